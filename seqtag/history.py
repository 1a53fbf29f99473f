"""Enrichment of observations with the labels of the preceding positions.

The base learner only ever sees independent observations. To let it condition
on the labeling so far, every observation is rewritten by a `HistoryEncoder`
before classification: the labels of the `window_size` preceding positions are
turned into history tokens, concatenated oldest first, and injected into the
observation's features.

Two strategies share the same contract:

1.  **Explicit features** (`ExplicitFeatureEncoder`): the history string is
    added as one extra categorical feature of the sparse representation the
    linear learner already reads, weighted by `transition_weight`.
2.  **Kernel-based** (`KernelHistoryEncoder`): the history string is written
    to a dedicated representation and the original one is left untouched; the
    learner's combined kernel weighs the two.

Positions before the start of the sequence contribute an "init" token that
carries its (negative) offset, so ``-2init`` and ``-1init`` stay distinct.
"""
from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Sequence, Tuple

from .errors import ConfigurationError
from .types import Label, Observation, SequenceExample, SparseVector

logger = logging.getLogger(__name__)

SEQUENCE_DELIMITER = "_"
TRANSITION_REPRESENTATION_NAME = "__trans_rep__"

EXPLICIT = "explicit"
KERNEL = "kernel"
ENCODER_STRATEGIES = (EXPLICIT, KERNEL)


def init_token(offset: int) -> str:
    """Returns the marker standing for a position ``offset`` before the start."""
    return f"{offset}init"


def history_tokens(preceding: Sequence[Label], position: int, window: int) -> Tuple[str, ...]:
    """
    Builds the ``window`` history tokens for the item at ``position``.

    Args:
        preceding: Labels assigned to the positions immediately before
                   ``position``, oldest first. Only the trailing
                   ``min(window, position)`` entries are used, so either the
                   full labeling so far or just its tail may be passed.
        position: Index of the item being enriched.
        window: Number of preceding labels to consider.

    Returns:
        Exactly ``window`` tokens, oldest first. Offsets before the sequence
        start are filled with `init_token` markers.

    Raises:
        ValueError: If fewer labels than required are supplied.
    """
    if window <= 0:
        return ()
    available = min(window, position)
    if len(preceding) < available:
        raise ValueError(
            f"Position {position} needs {available} preceding labels, got {len(preceding)}"
        )
    recent = list(preceding[len(preceding) - available:]) if available else []
    padding = [init_token(j) for j in range(position - window, position - available)]
    return tuple(padding + [str(label) for label in recent])


def history_string(tokens: Sequence[str]) -> str:
    return "".join(SEQUENCE_DELIMITER + token for token in tokens)


class HistoryEncoder(ABC):
    """
    Common contract of the history-enrichment strategies.

    Encoders are stateless once configured and never mutate their inputs:
    every call returns a new `Observation`.

    Attributes:
        window_size: How many preceding labels feed the history.
        representation: Name of the representation holding the original
                        features of an observation.
        transition_weight: Importance of the history-derived term.
    """
    strategy: str = ""

    def __init__(self, window_size: int, representation: str = "rep", transition_weight: float = 1.0):
        if window_size < 0:
            raise ConfigurationError(f"History window size must be >= 0, got {window_size}")
        self._window_size = int(window_size)
        self.representation = representation
        self.transition_weight = float(transition_weight)

    @property
    def window_size(self) -> int:
        return self._window_size

    def enrich(self, observation: Observation, history: Sequence[str]) -> Observation:
        """Enriches ``observation`` with an explicit list of history tokens."""
        if len(history) != self._window_size:
            raise ValueError(
                f"Expected {self._window_size} history tokens, got {len(history)}"
            )
        if self._window_size == 0:
            return Observation(observation.representations, observation.labels)
        return self._encode(observation, history_string(history))

    def enrich_at(self, sequence: SequenceExample, position: int, preceding: Sequence[Label]) -> Observation:
        """Enriches the item at ``position`` using the labels assigned before it."""
        tokens = history_tokens(preceding, position, self._window_size)
        return self.enrich(sequence[position], tokens)

    def enrich_sequence(self, sequence: SequenceExample) -> SequenceExample:
        """
        Enriches every item of a gold-labeled sequence using gold history.

        This is the teacher-forcing pass used to materialize training data:
        the history of position ``i`` is built from the gold labels of the
        positions before it, never from predictions.

        Raises:
            ValueError: If an item that contributes history has no gold label.
        """
        if self._window_size == 0:
            return sequence.duplicate()

        gold = sequence.labels
        enriched = []
        for idx, obs in enumerate(sequence):
            start = max(0, idx - self._window_size)
            preceding = gold[start:idx]
            missing = [start + k for k, label in enumerate(preceding) if label is None]
            if missing:
                raise ValueError(f"Item {missing[0]} has no gold label to use as history")
            tokens = history_tokens(preceding, idx, self._window_size)
            enriched.append(self._encode(obs, history_string(tokens)))
        return SequenceExample(tuple(enriched))

    @abstractmethod
    def _encode(self, observation: Observation, history_key: str) -> Observation:
        ...

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "window_size": self._window_size,
            "representation": self.representation,
            "transition_weight": self.transition_weight,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HistoryEncoder):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.to_dict().items())))

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(window_size={self._window_size}, "
            f"representation={self.representation!r}, transition_weight={self.transition_weight})"
        )


class ExplicitFeatureEncoder(HistoryEncoder):
    """Adds the history string as a weighted feature of the sparse representation."""
    strategy = EXPLICIT

    def _encode(self, observation: Observation, history_key: str) -> Observation:
        vector = observation.representation(self.representation)
        if not isinstance(vector, SparseVector):
            logger.warning(
                "Explicit history features need a sparse representation; '%s' is %s",
                self.representation,
                type(vector).__name__,
            )
            raise ConfigurationError(
                f"Representation '{self.representation}' is not a SparseVector "
                f"(got {type(vector).__name__}); use the kernel strategy instead."
            )
        enriched = vector.with_feature(history_key, self.transition_weight)
        return observation.with_representation(self.representation, enriched)


class KernelHistoryEncoder(HistoryEncoder):
    """Writes the history string to its own representation for a combined kernel."""
    strategy = KERNEL

    def __init__(
        self,
        window_size: int,
        representation: str = "rep",
        transition_weight: float = 1.0,
        transition_representation: str = TRANSITION_REPRESENTATION_NAME,
    ):
        super().__init__(window_size, representation, transition_weight)
        self.transition_representation = transition_representation

    def _encode(self, observation: Observation, history_key: str) -> Observation:
        return observation.with_representation(
            self.transition_representation, SparseVector({history_key: 1.0})
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["transition_representation"] = self.transition_representation
        return data


def make_encoder(
    strategy: str,
    window_size: int,
    representation: str = "rep",
    transition_weight: float = 1.0,
    **kwargs: Any,
) -> HistoryEncoder:
    """Instantiates the encoder registered under ``strategy``."""
    if strategy == EXPLICIT:
        return ExplicitFeatureEncoder(window_size, representation, transition_weight)
    if strategy == KERNEL:
        return KernelHistoryEncoder(window_size, representation, transition_weight, **kwargs)
    raise ConfigurationError(
        f"Unknown encoder strategy '{strategy}'. Expected one of {ENCODER_STRATEGIES}."
    )


def encoder_from_dict(data: Dict[str, Any]) -> HistoryEncoder:
    data = dict(data)
    strategy = data.pop("strategy")
    return make_encoder(strategy, **data)
