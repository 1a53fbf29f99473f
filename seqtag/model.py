from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .beam_search import Decoder
from .classifiers import Classifier, classifier_from_dict
from .config import DEFAULT_BEAM_SIZE, DEFAULT_MAX_EMISSION_CANDIDATES
from .history import HistoryEncoder, encoder_from_dict
from .path import SequencePrediction
from .types import Label, SequenceExample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SequenceModel:
    """
    A trained base classifier bound to the history encoder it was trained with.

    The pairing is fixed when training completes: decoding must enrich items
    exactly as the training items were enriched, otherwise the classifier sees
    features it never learned and silently degrades. `trained_window_size`
    records the window used at training time; a model assembled by hand with
    a different encoder window is accepted but logged as a warning.

    Attributes:
        classifier: The trained base classifier (read-only during decoding).
        encoder: The history encoder used to build the training items.
        trained_window_size: History window in effect during training.
    """
    classifier: Classifier
    encoder: HistoryEncoder
    trained_window_size: Optional[int] = None

    def __post_init__(self):
        if self.trained_window_size is None:
            object.__setattr__(self, "trained_window_size", self.encoder.window_size)
        elif self.trained_window_size != self.encoder.window_size:
            logger.warning(
                "Encoder window size %d differs from the %d used during training; "
                "predictions will be built from mismatched features",
                self.encoder.window_size,
                self.trained_window_size,
            )

    @property
    def labels(self) -> List[Label]:
        return list(self.classifier.labels)

    @property
    def window_size(self) -> int:
        return self.encoder.window_size

    def decode(
        self,
        sequence: SequenceExample,
        beam_size: int = DEFAULT_BEAM_SIZE,
        max_emission_candidates: int = DEFAULT_MAX_EMISSION_CANDIDATES,
    ) -> SequencePrediction:
        """Labels ``sequence`` and returns the ranked surviving paths."""
        return Decoder(self, beam_size, max_emission_candidates).run(sequence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "encoder": self.encoder.to_dict(),
            "classifier": self.classifier.to_dict(),
            "trained_window_size": self.trained_window_size,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SequenceModel":
        return cls(
            classifier=classifier_from_dict(data["classifier"]),
            encoder=encoder_from_dict(data["encoder"]),
            trained_window_size=data.get("trained_window_size"),
        )
