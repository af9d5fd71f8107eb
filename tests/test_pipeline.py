import pytest

from docqa.errors import ConfigurationError, InvalidQueryError, SourceUnavailableError
from docqa.models import DocumentObject, IndexState
from docqa.rag.pipeline import DocumentQAService
from docqa.rag.synthesizer import NO_CONTEXT_ANSWER

from conftest import FakeEmbedder, FakeGenerator, FakeSource, make_settings


class UnfilteredSource(FakeSource):
    """Source whose extension filter is a no-op, like a misbehaving adapter."""

    def list_objects_by_extension(self, extensions):
        return self.list_objects()


@pytest.fixture
def service(settings, source, embedder, generator):
    return DocumentQAService(settings, source=source, embedder=embedder, generator=generator)


def test_answer_query_end_to_end(service, generator):
    generator.response = "Employees get twenty five days. [Document 1]"
    record = service.answer_query("  How many vacation days do employees get?  ")

    assert record.answer == "Employees get twenty five days. [Document 1]"
    assert len(record.sources) == 1
    assert record.sources[0].title == "handbook/vacation.txt"
    assert record.sources[0].excerpt.endswith("...")
    assert "User question: How many vacation days do employees get?" in generator.prompts[0]
    assert service.status().ready is True


@pytest.mark.parametrize("query", ["", "   ", None, 42])
def test_invalid_query_is_rejected_before_any_work(service, source, embedder, query):
    with pytest.raises(InvalidQueryError):
        service.answer_query(query)
    assert source.list_calls == 0
    assert embedder.query_calls == 0


def test_empty_corpus_answers_with_apology(settings, embedder, generator, tmp_path):
    service = DocumentQAService(
        settings, source=FakeSource({}, temp_dir=str(tmp_path)), embedder=embedder, generator=generator
    )
    record = service.answer_query("Anything?")

    assert record.answer == NO_CONTEXT_ANSWER
    assert record.sources == []
    assert generator.prompts == []
    assert service.status().empty_corpus is True


def test_list_documents_only_returns_supported_extensions(settings, embedder, generator, tmp_path):
    source = UnfilteredSource(
        {
            "a.pdf": b"%PDF",
            "b.TXT": "text",
            "c.exe": b"MZ",
            "archive.tar.gz": b"",
            "README": "no extension",
            "d.docx": b"PK",
        },
        temp_dir=str(tmp_path),
    )
    service = DocumentQAService(settings, source=source, embedder=embedder, generator=generator)

    keys = [d.key for d in service.list_documents()]

    assert keys == ["a.pdf", "b.TXT", "d.docx"]
    assert all(isinstance(d, DocumentObject) for d in service.list_documents())


def test_reindex_and_status(service, source):
    assert service.status().state == IndexState.ABSENT

    result = service.reindex()
    assert result.success is True
    assert service.status().ready is True

    source.documents.clear()
    result = service.reindex()
    status = service.status()
    assert result.success is False
    assert status.ready is False
    assert status.empty_corpus is True


def test_warm_up_logs_and_continues_on_failure(settings, source, embedder, generator, caplog):
    source.fail_listing = True
    service = DocumentQAService(settings, source=source, embedder=embedder, generator=generator)

    assert service.warm_up() is False
    assert "initialization failed" in caplog.text
    assert service.status().state == IndexState.ABSENT

    source.fail_listing = False
    assert service.answer_query("vacation days?").answer


def test_source_errors_reach_the_caller(settings, source, embedder, generator):
    source.fail_listing = True
    service = DocumentQAService(settings, source=source, embedder=embedder, generator=generator)

    with pytest.raises(SourceUnavailableError):
        service.answer_query("vacation days?")


def test_source_url_without_presign_support(service):
    assert service.source_url("handbook/vacation.txt") is None


def test_invalid_settings_are_rejected(tmp_path, source):
    with pytest.raises(ConfigurationError):
        DocumentQAService(
            make_settings(tmp_path, chunk_size=100, chunk_overlap=100),
            source=source,
            embedder=FakeEmbedder(),
            generator=FakeGenerator(),
        )
