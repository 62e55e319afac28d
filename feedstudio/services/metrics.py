"""Text metrics recorded on every version."""

from typing import NamedTuple


class ContentMetrics(NamedTuple):
    word_count: int
    char_count: int


def derive_metrics(text: str) -> ContentMetrics:
    """
    Count words and characters of a body.

    Words are runs of non-whitespace; leading and trailing whitespace is
    ignored, so an empty or blank body has no words. Characters are counted
    on the raw text, whitespace and markup included.

    Args:
        text: The submitted body

    Returns:
        ContentMetrics(word_count, char_count)
    """
    return ContentMetrics(word_count=len(text.split()), char_count=len(text))
