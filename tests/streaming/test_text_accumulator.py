"""Tests for streaming/accumulator.py."""

import agentloop.streaming.accumulator as accumulator


class TestIngest:
    """Tests for snapshot/delta reconciliation."""

    def test_snapshot_chunks_yield_suffix_deltas(self) -> None:
        """Growing snapshots contribute only their new suffix."""
        acc = accumulator.TextAccumulator()
        assert acc.ingest("Hel") == "Hel"
        assert acc.ingest("Hello.") == "lo."
        assert acc.text == "Hello."

    def test_pure_deltas_are_appended(self) -> None:
        acc = accumulator.TextAccumulator()
        assert acc.ingest("Hello") == "Hello"
        assert acc.ingest(", world") == ", world"
        assert acc.text == "Hello, world"

    def test_stale_chunk_contributes_nothing(self) -> None:
        """A chunk the running text already starts with is ignored."""
        acc = accumulator.TextAccumulator()
        acc.ingest("Hello.")
        assert acc.ingest("Hel") == ""
        assert acc.text == "Hello."

    def test_repeated_snapshot_contributes_nothing(self) -> None:
        acc = accumulator.TextAccumulator()
        acc.ingest("Hello")
        assert acc.ingest("Hello") == ""
        assert acc.text == "Hello"

    def test_empty_chunk(self) -> None:
        acc = accumulator.TextAccumulator()
        assert acc.ingest("") == ""
        assert acc.text == ""

    def test_deltas_concatenate_to_text(self) -> None:
        """Concatenated deltas always equal the final text."""
        acc = accumulator.TextAccumulator()
        chunks = ["The", "The quick", " brown", "The quick brown", " fox"]
        deltas = [acc.ingest(chunk) for chunk in chunks]
        assert "".join(deltas) == acc.text == "The quick brown fox"


class TestAppend:
    """Tests for the pure-delta path."""

    def test_repeated_delta_is_kept(self) -> None:
        """Repeated text is real text when the vendor streams pure deltas."""
        acc = accumulator.TextAccumulator()
        acc.append("ha")
        assert acc.append("ha") == "ha"
        assert acc.text == "haha"
        assert str(acc) == "haha"
