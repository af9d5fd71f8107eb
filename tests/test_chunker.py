import pytest

from docqa.errors import ConfigurationError
from docqa.models import ChunkMetadata, NormalizedUnit
from docqa.rag.chunker import chunk_units


def _paragraph(start: int, count: int) -> str:
    return " ".join(f"Sentence {i:03d} covers item {i:03d}." for i in range(start, start + count))


def _unit(text: str, source: str = "docs/a.txt", page=None) -> NormalizedUnit:
    return NormalizedUnit(text=text, metadata=ChunkMetadata(source=source, page_number=page))


def _assert_covers(text, chunks):
    """Every character of text lies inside at least one chunk."""
    covered_until = 0
    for chunk in sorted(chunks, key=lambda c: c.start_index):
        assert text[chunk.start_index : chunk.start_index + len(chunk.text)] == chunk.text
        assert chunk.start_index <= covered_until
        covered_until = max(covered_until, chunk.start_index + len(chunk.text))
    assert covered_until == len(text)


def test_chunks_cover_text_without_gaps():
    """
    A multi-paragraph unit longer than the chunk size is split into several
    chunks that are all within the size limit and together cover every
    character of the unit.
    """
    text = "\n\n".join(_paragraph(i * 20, 20) for i in range(4))
    chunks = chunk_units([_unit(text)], chunk_size=200, chunk_overlap=50)

    assert len(chunks) > 4
    assert all(0 < len(c.text) <= 200 for c in chunks)
    _assert_covers(text, chunks)


def test_consecutive_chunks_overlap():
    text = _paragraph(0, 30)
    chunks = chunk_units([_unit(text)], chunk_size=200, chunk_overlap=50)

    overlaps = [
        prev.start_index + len(prev.text) - nxt.start_index
        for prev, nxt in zip(chunks, chunks[1:])
    ]
    assert any(o > 0 for o in overlaps)
    assert all(o <= 50 for o in overlaps)


def test_hard_cut_when_no_separator():
    text = "x" * 450
    chunks = chunk_units([_unit(text)], chunk_size=100, chunk_overlap=20)

    assert all(len(c.text) <= 100 for c in chunks)
    _assert_covers(text, chunks)


def test_start_index_follows_overlap_on_repeated_text():
    text = "x" * 450
    chunks = chunk_units([_unit(text)], chunk_size=100, chunk_overlap=20)

    assert [c.start_index for c in chunks] == [0, 80, 160, 240, 320, 400]


@pytest.mark.parametrize(
    "text, size, overlap",
    [
        ("ab " * 120, 30, 10),
        ("la la la. " * 40, 25, 12),
        ("same line\n" * 60, 40, 15),
        ("aaaa bbbb " * 50, 17, 5),
    ],
)
def test_repetitive_text_offsets_cover_text(text, size, overlap):
    chunks = chunk_units([_unit(text)], chunk_size=size, chunk_overlap=overlap)

    starts = [c.start_index for c in chunks]
    assert starts == sorted(starts)
    _assert_covers(text, chunks)


def test_chunk_index_restarts_per_unit_and_metadata_is_inherited():
    units = [
        _unit(_paragraph(0, 15), source="docs/a.pdf", page=1),
        _unit(_paragraph(100, 15), source="docs/a.pdf", page=2),
        _unit("Short note.", source="docs/b.txt"),
    ]
    chunks = chunk_units(units, chunk_size=200, chunk_overlap=50)

    for unit in units:
        own = [c for c in chunks if c.metadata == unit.metadata]
        assert [c.chunk_index for c in own] == list(range(len(own)))
        # chunks never cross unit boundaries
        assert all(c.text in unit.text for c in own)

    last = chunks[-1]
    assert last.text == "Short note."
    assert last.metadata.source == "docs/b.txt"
    assert last.metadata.page_number is None


def test_short_unit_is_single_chunk():
    chunks = chunk_units([_unit("Only a few words here.")], chunk_size=500, chunk_overlap=200)
    assert len(chunks) == 1
    assert chunks[0].chunk_index == 0
    assert chunks[0].start_index == 0


@pytest.mark.parametrize("size, overlap", [(100, 100), (100, 150), (0, 0)])
def test_invalid_overlap_is_configuration_error(size, overlap):
    with pytest.raises(ConfigurationError):
        chunk_units([_unit("text")], chunk_size=size, chunk_overlap=overlap)
