"""Training orchestration for the sequence labeler.

`SequenceLearner` wires a base learner to a history encoder, checks that the
two can work together, and turns a gold-labeled corpus into a trained
`SequenceModel`:

1.  Collect the label set of the corpus and hand it to the base learner.
2.  Enrich each sequence with gold history and flatten the corpus.
3.  Train the base learner on the flat corpus. Its errors propagate as is.
4.  Bind the trained classifier and the encoder into a `SequenceModel`.
"""
from __future__ import annotations
import logging
from typing import Optional, Sequence

from .classifiers import Classifier, KernelPerceptron, make_classifier
from .config import Config
from .errors import ConfigurationError
from .history import EXPLICIT, KERNEL, HistoryEncoder, KernelHistoryEncoder, make_encoder
from .kernels import KernelCombination, LinearKernel
from .model import SequenceModel
from .model_builder import build_flat_corpus, collect_labels
from .types import SequenceExample

logger = logging.getLogger(__name__)


def combine_kernels(classifier: KernelPerceptron, encoder: KernelHistoryEncoder) -> KernelPerceptron:
    """
    Returns a copy of ``classifier`` whose kernel also compares histories.

    The new kernel is ``1 * original + transition_weight * transition``, with
    the weights renormalized to sum to one. With a zero window there is no
    history representation and the classifier is copied unchanged.
    """
    copy = classifier.duplicate()
    if encoder.window_size == 0:
        return copy
    combined = KernelCombination()
    combined.add_kernel(1.0, classifier.kernel)
    combined.add_kernel(encoder.transition_weight, LinearKernel(encoder.transition_representation))
    combined.normalize_weights()
    copy.kernel = combined
    return copy


class SequenceLearner:
    """
    Trains sequence models from a base learner and a history encoder.

    Attributes:
        classifier: The untrained base learner used as a prototype. Every call
                    to `train` works on a fresh duplicate, so models returned
                    by earlier calls are never modified.
        encoder: The history encoder shared by training and decoding.
        show_progress: Displays a progress bar while enriching sequences.
    """

    def __init__(self, classifier: Classifier, encoder: HistoryEncoder, show_progress: bool = False):
        self.encoder = encoder
        self.show_progress = show_progress

        if encoder.strategy == EXPLICIT:
            representation = getattr(classifier, "representation", None)
            if representation is None:
                raise ConfigurationError(
                    f"{type(classifier).__name__} does not read a sparse representation; "
                    "explicit history features need a linear learner."
                )
            if representation != encoder.representation:
                raise ConfigurationError(
                    f"The learner reads '{representation}' but the encoder enriches "
                    f"'{encoder.representation}'."
                )
            self.classifier = classifier
        elif encoder.strategy == KERNEL:
            if not isinstance(classifier, KernelPerceptron):
                raise ConfigurationError(
                    f"{type(classifier).__name__} is not a kernel-based method; "
                    "the kernel history strategy needs one."
                )
            self.classifier = combine_kernels(classifier, encoder)
        else:
            raise ConfigurationError(f"Unknown encoder strategy '{encoder.strategy}'")

    @classmethod
    def from_config(cls, cfg: Config, show_progress: bool = False) -> "SequenceLearner":
        encoder = make_encoder(
            cfg.encoder_strategy,
            cfg.history_window_size,
            representation=cfg.representation,
            transition_weight=cfg.transition_weight,
        )
        return cls(make_classifier(cfg), encoder, show_progress=show_progress)

    @property
    def window_size(self) -> int:
        return self.encoder.window_size

    def train(self, corpus: Sequence[SequenceExample]) -> SequenceModel:
        """
        Trains a base classifier on the history-enriched corpus.

        Args:
            corpus: Gold-labeled sequences.

        Returns:
            The trained classifier bound to this learner's encoder.

        Raises:
            ValueError: If the corpus carries no label, or a sequence lacks a
                        gold label needed as history.
        """
        corpus = list(corpus)
        labels = collect_labels(corpus)
        if not labels:
            raise ValueError("The training corpus does not contain any labeled item")

        classifier = self.classifier.duplicate()
        classifier.set_labels(labels)

        flat = build_flat_corpus(corpus, self.encoder, show_progress=self.show_progress)
        logger.info(
            "Training %s on %d items from %d sequences (%d labels, window %d)",
            type(classifier).__name__,
            len(flat),
            len(corpus),
            len(labels),
            self.encoder.window_size,
        )
        classifier.train(flat)

        return SequenceModel(classifier, self.encoder, trained_window_size=self.encoder.window_size)


def train_sequence_model(
    corpus: Sequence[SequenceExample],
    cfg: Optional[Config] = None,
    show_progress: bool = False,
) -> SequenceModel:
    """Trains a model with the learner and encoder selected by ``cfg``."""
    cfg = cfg or Config()
    return SequenceLearner.from_config(cfg, show_progress=show_progress).train(corpus)
