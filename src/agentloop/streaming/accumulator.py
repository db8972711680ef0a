"""
Reconciliation of streamed text chunks.

Some vendors stream pure deltas, others stream growing snapshots of the
whole text so far, and some repeat a chunk they already sent. The
TextAccumulator turns any of these into one running text plus the
delta each chunk contributed.
"""


class TextAccumulator:
    """Running text built from delta or snapshot chunks."""

    def __init__(self) -> None:
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    def ingest(self, chunk: str) -> str:
        """
        Reconcile one chunk and return the new text it contributes.

        - A chunk that extends the running text is a snapshot: the delta is
          the suffix and the chunk becomes the running text.
        - A chunk that the running text already starts with is stale: the
          delta is empty.
        - Anything else is appended as a delta.
        """
        if not chunk:
            return ""
        if chunk.startswith(self._text):
            delta = chunk[len(self._text) :]
            self._text = chunk
            return delta
        if self._text.startswith(chunk):
            return ""
        self._text += chunk
        return chunk

    def append(self, delta: str) -> str:
        """Append a chunk known to be a pure delta."""
        self._text += delta
        return delta

    def __str__(self) -> str:
        return self._text
