"""Unit tests for the overlapping text chunker."""

from opengmao.rag.chunker import clean_text, estimate_page_number, split_text_into_chunks


class TestCleanText:
    """Test clean_text."""

    def test_line_endings_and_blank_runs(self):
        """Test CRLF conversion and collapsing of blank line runs."""
        assert clean_text("  a\r\nb\n\n\n\nc  ") == "a\nb\n\nc"


class TestSplitTextIntoChunks:
    """Test split_text_into_chunks."""

    def test_empty_text(self):
        """Test that empty text gives no chunk."""
        assert split_text_into_chunks("") == []

    def test_short_text_is_one_chunk(self):
        """Test that a text shorter than the chunk size is returned whole."""
        chunks = split_text_into_chunks("Vidanger le compresseur toutes les 4000 heures.")
        assert len(chunks) == 1
        assert chunks[0]["metadata"] == {"chunk_index": 0, "char_start": 0, "char_end": 47}

    def test_long_text_overlaps_and_terminates(self):
        """Test chunk sizes, indices and overlap on a long text."""
        sentence = "Contrôler la pression du circuit avant chaque démarrage. "
        text = sentence * 200
        chunks = split_text_into_chunks(text, chunk_size=500, overlap=50)

        assert len(chunks) > 10
        assert [c["metadata"]["chunk_index"] for c in chunks] == list(range(len(chunks)))
        for chunk in chunks:
            assert len(chunk["content"]) <= 500
            assert len(chunk["content"]) > 50
        for previous, current in zip(chunks, chunks[1:]):
            assert current["metadata"]["char_start"] < previous["metadata"]["char_end"]

    def test_breaks_on_sentence_end(self):
        """Test that chunks end on a sentence boundary when one is available."""
        text = ("Phrase numéro un du manuel technique. " * 60).strip()
        chunks = split_text_into_chunks(text, chunk_size=400, overlap=40)
        assert all(c["content"].endswith(".") for c in chunks[:-1])

    def test_text_without_break_points(self):
        """Test that a text without separators is still cut and the loop ends."""
        chunks = split_text_into_chunks("x" * 5000, chunk_size=1000, overlap=100)
        assert len(chunks) == 6
        assert chunks[0]["metadata"]["char_end"] == 1000
        assert chunks[1]["metadata"]["char_start"] == 900


class TestEstimatePageNumber:
    """Test estimate_page_number."""

    def test_pages_of_3000_characters(self):
        """Test the page boundaries."""
        assert estimate_page_number(0) == 1
        assert estimate_page_number(2999) == 1
        assert estimate_page_number(3000) == 2
