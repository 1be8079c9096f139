"""Split long text into overlapping chunks sized to the oracle's context window."""

from dataclasses import dataclass
from typing import List, Sequence
import logging

logger = logging.getLogger(__name__)

LIGHT = "light"
HEAVY = "heavy"


@dataclass
class Chunk:
    """A bounded slice of the input text."""
    index: int
    start: int
    text: str

    @property
    def end(self) -> int:
        return self.start + len(self.text)


def model_tier(model_id: str, provider: str, light_markers: Sequence[str]) -> str:
    """
    Classify a model as "light" (small local model) or "heavy".

    Remote backends are always heavy. Local model ids are light when they
    carry a size marker such as ":1b" or "mini".
    """
    if provider == "remote":
        return HEAVY
    lowered = (model_id or "").lower()
    if any(marker.lower() in lowered for marker in light_markers):
        return LIGHT
    return HEAVY


def split_into_chunks(text: str, max_chars: int, overlap: int = 0) -> List[Chunk]:
    """
    Split text into chunks of at most ``max_chars`` characters.

    Consecutive chunks share ``overlap`` characters so that a value cut by
    one boundary is whole in the next chunk. A boundary is moved back to a
    whitespace break when one exists in the last 10% of the window.

    Args:
        text: Text to split
        max_chars: Maximum chunk length (positive)
        overlap: Characters shared by consecutive chunks (< max_chars)

    Returns:
        Chunks in text order. Empty text gives no chunks.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    if overlap < 0 or overlap >= max_chars:
        raise ValueError("overlap must be in [0, max_chars)")

    if not text:
        return []

    chunks: List[Chunk] = []
    start = 0
    length = len(text)

    while start < length:
        end = min(start + max_chars, length)

        if end < length:
            window_start = max(start + 1, end - max_chars // 10)
            for pos in range(end - 1, window_start - 1, -1):
                if text[pos].isspace():
                    end = pos + 1
                    break

        chunks.append(Chunk(index=len(chunks), start=start, text=text[start:end]))

        if end >= length:
            break
        start = max(end - overlap, start + 1)

    logger.debug(f"Split {length} chars into {len(chunks)} chunks (max {max_chars}, overlap {overlap})")
    return chunks
