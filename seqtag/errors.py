"""Exception hierarchy shared by the training and decoding code paths."""
from __future__ import annotations

from typing import Optional


class SeqtagError(Exception):
    """Base class for every error raised by the sequence labeler itself."""


class ConfigurationError(SeqtagError, ValueError):
    """Raised when settings or component pairings cannot work together."""


class CorpusFormatError(SeqtagError, TypeError):
    """Raised when a corpus file does not follow the expected JSON layout."""


class DecodingError(SeqtagError):
    """Raised when a sequence cannot be decoded at a given position.

    Attributes:
        sequence_index: Index of the offending sequence inside a batch, or
                        ``None`` when a single sequence was decoded.
        position: Index of the observation where decoding stopped.
    """

    def __init__(self, message: str, position: int, sequence_index: Optional[int] = None):
        where = f"position {position}"
        if sequence_index is not None:
            where = f"sequence {sequence_index}, {where}"
        super().__init__(f"{message} ({where})")
        self.position = position
        self.sequence_index = sequence_index
