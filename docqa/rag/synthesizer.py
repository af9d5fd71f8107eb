import logging
from typing import List

from docqa.models import AnswerRecord, RetrievedChunk
from docqa.rag.citations import cited_sources

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an AI assistant that answers questions using the knowledge in internal company documents. "
    "Follow these guidelines:\n"
    "1. Answer accurately, based only on the information in the provided documents.\n"
    "2. If the documents do not contain the information, say honestly that you don't know.\n"
    "3. Cite the documents you relied on.\n"
    "4. Explain technical terms and complex concepts in plain language.\n"
    "5. Keep a polite, professional tone."
)

NO_CONTEXT_ANSWER = (
    "Sorry, I couldn't find any information related to your question. "
    "Please try a different question or other keywords."
)


def build_prompt(query: str, retrieved: List[RetrievedChunk]) -> str:
    contexts = [
        f"Document [{i}] (source: {hit.chunk.metadata.source}):\n{hit.chunk.text}\n"
        for i, hit in enumerate(retrieved, start=1)
    ]
    joined = "\n".join(contexts)
    return (
        f"{SYSTEM_PROMPT}\n\n"
        "These are the documents you may refer to when answering:\n"
        f"{joined}\n"
        f"User question: {query}\n\n"
        "Answer format:\n"
        "1. Answer the question directly.\n"
        "2. After the answer, list the document numbers you referred to in the form "
        "[Document 1, Document 3].\n"
    )


class AnswerSynthesizer:
    """Builds the grounding prompt, calls the generator and extracts citations."""

    def __init__(self, generator):
        self.generator = generator

    def synthesize(self, query: str, retrieved: List[RetrievedChunk]) -> AnswerRecord:
        if not retrieved:
            return AnswerRecord(answer=NO_CONTEXT_ANSWER, sources=[])
        answer_text = self.generator.generate(build_prompt(query, retrieved))
        sources = cited_sources(answer_text, retrieved)
        if not sources:
            logger.info("Answer contains no usable document citations")
        return AnswerRecord(answer=answer_text, sources=sources)
