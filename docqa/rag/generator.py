import logging

from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import ModelInference
from ibm_watsonx_ai.metanames import GenTextParamsMetaNames as GenParams
from ibm_watsonx_ai.wml_client_error import ApiRequestFailure
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docqa.config import Settings
from docqa.errors import GenerationProviderError

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (ApiRequestFailure, ConnectionError, TimeoutError)


def _generated_text(data) -> str:
    if hasattr(data, "get_result"):
        data = data.get_result()
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        if data.get("results"):
            return data["results"][0].get("generated_text", "")
        if "generated_text" in data:
            return data["generated_text"]
    if hasattr(data, "generated_text"):
        return data.generated_text
    raise GenerationProviderError(
        f"Unexpected generation response format from watsonx.ai: {type(data)}"
    )


class GeneratorClient:
    """Single-shot text generation backed by watsonx.ai."""

    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        if client is None:
            credentials = Credentials(
                api_key=settings.ibm_cloud_api_key,
                url=f"https://{settings.watsonx_region}.ml.cloud.ibm.com",
            )
            client = ModelInference(
                model_id=settings.watsonx_gen_model,
                project_id=settings.watsonx_project_id,
                credentials=credentials,
            )
        self.client = client

    def generate(self, prompt: str) -> str:
        """Generate a completion for a fully built prompt.

        Raises:
            GenerationProviderError: If the request fails after retries.
        """
        params = {
            GenParams.TEMPERATURE: float(self.settings.temperature),
            GenParams.MAX_NEW_TOKENS: self.settings.max_new_tokens,
        }
        retrying = Retrying(
            stop=stop_after_attempt(max(1, self.settings.provider_max_retries)),
            wait=wait_exponential(
                multiplier=self.settings.provider_backoff_seconds, max=30
            ),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=lambda state: logger.warning(
                f"Generation request failed (attempt {state.attempt_number}), retrying"
            ),
        )
        try:
            response = retrying(self.client.generate_text, prompt=prompt, params=params)
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise GenerationProviderError(f"Generation request failed: {cause}") from cause
        except Exception as e:
            raise GenerationProviderError(f"Generation request failed: {e}") from e
        return _generated_text(response).strip()
