"""Beam search decoding of label sequences.

This module hosts the decoder that turns per-item classifier scores into
whole-sequence labelings. The search walks the sequence left to right. At each
position every hypothesis in the beam re-enriches the current item with its
*own* predicted history, asks the base classifier for label scores, converts
them to emission probabilities with a softmax, and branches into its best
candidate labels. All branches of all hypotheses are then pooled, ranked by
accumulated log-probability, and cut back to the beam size.

The result is approximate: pruning can discard the prefix of the globally
optimal labeling. `beam_size` bounds the breadth of the search and
`max_emission_candidates` bounds the branching factor of each hypothesis.
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from .config import Config, DEFAULT_BEAM_SIZE, DEFAULT_MAX_EMISSION_CANDIDATES
from .errors import DecodingError
from .path import SequencePath, SequencePrediction, rank_paths
from .types import Label, SequenceExample

if TYPE_CHECKING:
    from .model import SequenceModel

logger = logging.getLogger(__name__)


def emission_probabilities(scores: Mapping[Label, float], labels: Sequence[Label]) -> Dict[Label, float]:
    """
    Normalizes raw classifier scores into a probability per label.

    ``p(label) = exp(score(label)) / sum(exp(score(l)) for l in labels)``.
    Scores are shifted by their maximum before exponentiation, which leaves
    the result unchanged but keeps large scores from overflowing.

    Raises:
        KeyError: If a label has no score.
    """
    values = np.array([float(scores[label]) for label in labels], dtype=float)
    exp = np.exp(values - values.max())
    probs = exp / exp.sum()
    return {label: float(p) for label, p in zip(labels, probs)}


def rank_emissions(probabilities: Mapping[Label, float]) -> List[Tuple[Label, float]]:
    """Orders ``(label, probability)`` pairs by probability, best first.

    Labels with equal probability keep the classifier's label order.
    """
    return sorted(probabilities.items(), key=lambda kv: kv[1], reverse=True)


class Decoder:
    """Stateful orchestrator for decoding one sequence at a time.

    Attributes
    ----------
    model:
        The :class:`~seqtag.model.SequenceModel` pairing the trained
        classifier with the history encoder used at training time.
    beam_size:
        The number of hypotheses kept after each position.
    max_emission_candidates:
        The number of best labels each hypothesis may branch into.
    beam:
        The hypotheses surviving the last processed position.
    """

    def __init__(
        self,
        model: "SequenceModel",
        beam_size: int = DEFAULT_BEAM_SIZE,
        max_emission_candidates: int = DEFAULT_MAX_EMISSION_CANDIDATES,
    ):
        if beam_size < 1:
            raise ValueError(f"beam_size must be >= 1, got {beam_size}")
        if max_emission_candidates < 1:
            raise ValueError(f"max_emission_candidates must be >= 1, got {max_emission_candidates}")
        self.model = model
        self.beam_size = beam_size
        self.max_emission_candidates = max_emission_candidates
        self.beam: List[SequencePath] = []

    @property
    def window_size(self) -> int:
        return self.model.encoder.window_size

    def emissions_for(
        self,
        sequence: SequenceExample,
        position: int,
        path: SequencePath,
        sequence_index: Optional[int] = None,
    ) -> Dict[Label, float]:
        """
        Computes the emission probabilities of ``path`` at ``position``.

        The item is enriched with the last ``window_size`` labels of this
        particular hypothesis, never with gold labels.

        Raises:
            DecodingError: If the classifier yields no label or omits one.
        """
        encoder = self.model.encoder
        classifier = self.model.classifier
        enriched = encoder.enrich_at(sequence, position, path.last_labels(encoder.window_size))

        try:
            scores = classifier.predict(enriched)
        except Exception:
            logger.error(
                "Base classifier failed on sequence %s at position %d", sequence_index, position
            )
            raise

        labels = list(classifier.labels) or list(scores)
        if not labels:
            raise DecodingError("The classifier produced no labels", position, sequence_index)
        missing = [label for label in labels if label not in scores]
        if missing:
            raise DecodingError(f"The classifier produced no score for {missing}", position, sequence_index)
        return emission_probabilities(scores, labels)

    def _expand(
        self,
        sequence: SequenceExample,
        position: int,
        path: SequencePath,
        sequence_index: Optional[int],
    ) -> List[SequencePath]:
        ranked = rank_emissions(self.emissions_for(sequence, position, path, sequence_index))

        if self.window_size == 0:
            # History is irrelevant: every hypothesis simply takes its best label.
            label, probability = ranked[0]
            return [path.append(label, probability)]

        return [
            path.append(label, probability)
            for label, probability in ranked[: self.max_emission_candidates]
        ]

    def run(self, sequence: SequenceExample, sequence_index: Optional[int] = None) -> SequencePrediction:
        """
        Executes the beam search over ``sequence``.

        Args:
            sequence: The sequence to label. Gold labels, if any, are ignored.
            sequence_index: Position of the sequence in a batch, used in error
                            messages.

        Returns:
            A `SequencePrediction` holding at most `beam_size` paths sorted
            best first. An empty sequence yields a single empty path.
        """
        self.beam = [SequencePath()]

        for position in range(len(sequence)):
            candidates: List[SequencePath] = []
            for path in self.beam:
                candidates.extend(self._expand(sequence, position, path, sequence_index))

            if not candidates:
                raise DecodingError("No candidate survived the expansion", position, sequence_index)

            self.beam = rank_paths(candidates)[: self.beam_size]

        return SequencePrediction(self.beam)


def decode(sequence: SequenceExample, model: "SequenceModel", cfg: Optional[Config] = None) -> SequencePrediction:
    """Decodes one sequence with the beam settings of ``cfg`` (or the defaults)."""
    cfg = cfg or Config()
    decoder = Decoder(model, cfg.beam_size, cfg.max_emission_candidates)
    return decoder.run(sequence)


def decode_corpus(
    sequences: Sequence[SequenceExample],
    model: "SequenceModel",
    cfg: Optional[Config] = None,
    show_progress: bool = False,
) -> List[SequencePrediction]:
    """
    Decodes a batch of sequences, keeping the input order.

    Sequences are independent of each other, so with ``cfg.workers > 1`` they
    are spread over a thread pool. Each task builds its own `Decoder`; only the
    read-only model is shared. The model must not be retrained while a batch
    is in flight.
    """
    cfg = cfg or Config()

    def _decode_one(item: Tuple[int, SequenceExample]) -> SequencePrediction:
        idx, sequence = item
        return Decoder(model, cfg.beam_size, cfg.max_emission_candidates).run(sequence, sequence_index=idx)

    items = list(enumerate(sequences))
    if cfg.workers <= 1:
        return [
            _decode_one(item)
            for item in tqdm(items, desc="Decoding", unit="seq", disable=not show_progress)
        ]

    with ThreadPoolExecutor(max_workers=cfg.workers) as pool:
        results = pool.map(_decode_one, items)
        return list(tqdm(results, total=len(items), desc="Decoding", unit="seq", disable=not show_progress))
