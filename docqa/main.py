"""Streamlit application for question answering over company documents.

This module provides the user interface: a chat for questions, a sidebar
listing the documents in the bucket, the index status and a reindex action.
"""

import logging
from typing import List

import streamlit as st
from dotenv import load_dotenv

from docqa.config import Settings
from docqa.errors import DocQAError, InvalidQueryError
from docqa.models import AnswerRecord, DocumentObject
from docqa.rag.pipeline import DocumentQAService

logger = logging.getLogger(__name__)


@st.cache_resource
def get_settings() -> Settings:
    """Load and cache application settings.

    Returns:
        Settings instance loaded from environment variables.
    """
    load_dotenv()
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return settings


@st.cache_resource
def get_service(_settings: Settings) -> DocumentQAService:
    """Create the service once per process and build the index at startup."""
    service = DocumentQAService(_settings)
    service.warm_up()
    return service


def init_state() -> None:
    if "messages" not in st.session_state:
        st.session_state["messages"] = []


def format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def sidebar_status(service: DocumentQAService) -> None:
    st.sidebar.markdown("### Index")
    status = service.status()
    if status.ready:
        st.sidebar.success("Index ready")
    elif status.empty_corpus:
        st.sidebar.warning("No documents indexed")
    else:
        st.sidebar.info(f"Index {status.state.value}")

    if st.sidebar.button("Reindex documents", use_container_width=True):
        with st.spinner("Reindexing documents..."):
            try:
                result = service.reindex()
            except DocQAError as e:
                st.sidebar.error(f"Reindexing failed: {e}")
            else:
                if result.success:
                    st.sidebar.success(result.message)
                else:
                    st.sidebar.warning(result.message)


def sidebar_documents(service: DocumentQAService) -> None:
    """Display the documents available in the bucket."""
    st.sidebar.markdown("### Documents")
    try:
        documents: List[DocumentObject] = service.list_documents()
    except DocQAError as e:
        st.sidebar.error(f"Cannot list documents: {e}")
        return

    if not documents:
        st.sidebar.info("No supported documents found in the bucket")
        return
    st.sidebar.caption(f"{len(documents)} document(s)")
    for doc in documents:
        st.sidebar.markdown(f"**{doc.key}**")
        modified = doc.last_modified.strftime("%Y-%m-%d %H:%M") if doc.last_modified else "-"
        st.sidebar.caption(f"{format_size(doc.size)} · {modified}")


def render_answer(service: DocumentQAService, record: AnswerRecord) -> None:
    st.markdown(record.answer)
    if not record.sources:
        return
    with st.expander(f"Sources ({len(record.sources)})"):
        for src in record.sources:
            url = service.source_url(src.title)
            title = f"[{src.title}]({url})" if url else src.title
            st.markdown(f"**{title}**")
            st.caption(src.excerpt)


def chat_ui(service: DocumentQAService) -> None:
    for message in st.session_state["messages"]:
        with st.chat_message(message["role"]):
            if message["role"] == "assistant":
                render_answer(service, message["record"])
            else:
                st.markdown(message["content"])

    user_input = st.chat_input("Ask a question about your documents…")
    if not user_input:
        return

    st.session_state["messages"].append({"role": "user", "content": user_input})
    with st.chat_message("user"):
        st.markdown(user_input)

    with st.chat_message("assistant"):
        with st.spinner("Searching documents..."):
            try:
                record = service.answer_query(user_input)
            except InvalidQueryError as e:
                st.warning(str(e))
                return
            except DocQAError as e:
                logger.error(f"Question handling failed: {e}")
                st.error(f"An error occurred while processing your question: {e}")
                return
        render_answer(service, record)
        st.caption(record.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S"))
    st.session_state["messages"].append({"role": "assistant", "record": record})


def main() -> None:
    """Main entry point for the Streamlit application."""
    st.set_page_config(
        page_title="Document Q&A",
        page_icon=None,
        layout="wide",
        initial_sidebar_state="expanded",
    )
    settings = get_settings()
    init_state()
    service = get_service(settings)

    st.title("Document Q&A")
    st.caption(f"Answers grounded in the documents of bucket {settings.cos_bucket}")

    sidebar_status(service)
    st.sidebar.divider()
    sidebar_documents(service)
    chat_ui(service)


if __name__ == "__main__":
    main()
