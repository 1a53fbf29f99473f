"""Base learners wrapped by the sequence labeler.

The sequence machinery only relies on the small `Classifier` contract below:
a classifier is told the label set, trained on a flat list of (enriched)
observations, and then maps one observation to a real-valued score per label.
Three learners implement it:

-   `LinearPerceptron`: one-vs-all margin perceptrons over a sparse
    representation. Pairs with the explicit-feature history encoder.
-   `KernelPerceptron`: the dual form of the same learner over an arbitrary
    `Kernel`. Pairs with the kernel-based history encoder.
-   `LogOddsClassifier`: per-feature smoothed log-odds with optional
    iterative reweighting of misclassified items.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import numpy as np
import pandas as pd

from .errors import ConfigurationError
from .kernels import Kernel, LinearKernel, kernel_from_dict
from .model_builder import build_feature_table, build_weights
from .types import Label, Observation, SparseVector

logger = logging.getLogger(__name__)


@runtime_checkable
class Classifier(Protocol):
    """The capabilities the sequence labeler needs from a base learner."""

    labels: List[Label]

    def set_labels(self, labels: Sequence[Label]) -> None: ...

    def predict(self, observation: Observation) -> Dict[Label, float]: ...

    def train(self, observations: Sequence[Observation]) -> None: ...

    def duplicate(self) -> "Classifier": ...

    def reset(self) -> None: ...

    def to_dict(self) -> Dict[str, Any]: ...


class BaseClassifier:
    """Label bookkeeping shared by the bundled learners."""
    kind: str = ""

    def __init__(self):
        self.labels: List[Label] = []

    def set_labels(self, labels: Sequence[Label]) -> None:
        self.labels = list(labels)
        self.reset()

    def _require_labels(self) -> None:
        if not self.labels:
            raise ValueError(f"{type(self).__name__} has no labels; call set_labels() before training")

    def reset(self) -> None:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


def _shuffled_order(n: int, rng: Optional[np.random.Generator]) -> np.ndarray:
    if rng is None:
        return np.arange(n)
    return rng.permutation(n)


def _validate_alpha(alpha: float) -> float:
    if alpha <= 0 or alpha > 1:
        raise ConfigurationError(
            "Invalid learning rate for the perceptron algorithm: valid alphas in (0,1]"
        )
    return float(alpha)


class LinearPerceptron(BaseClassifier):
    """
    One-vs-all perceptron over a single sparse representation.

    For every label a binary perceptron is kept. An item triggers an update of
    the label's model when the prediction has the wrong sign or falls inside
    the margin: the item's vector is added with weight ``+alpha`` (positive
    item) or ``-alpha`` (negative item), and the bias moves by the same amount
    unless the model is unbiased.

    Attributes:
        representation: Name of the sparse representation to read.
        alpha: Learning rate in (0, 1].
        margin: Minimum absolute score a correct prediction must reach.
        unbiased: Disables the bias term.
        epochs: Number of passes over the training data.
        seed: Seed for shuffling the items before each epoch. ``None`` keeps
              the input order.
    """
    kind = "perceptron"

    def __init__(
        self,
        representation: str = "rep",
        alpha: float = 1.0,
        margin: float = 1.0,
        unbiased: bool = False,
        epochs: int = 1,
        seed: Optional[int] = None,
    ):
        super().__init__()
        self.representation = representation
        self.alpha = _validate_alpha(alpha)
        self.margin = float(margin)
        self.unbiased = bool(unbiased)
        self.epochs = int(epochs)
        self.seed = seed
        self.weights: Dict[Label, Dict[str, float]] = {}
        self.bias: Dict[Label, float] = {}

    def reset(self) -> None:
        self.weights = {label: {} for label in self.labels}
        self.bias = {label: 0.0 for label in self.labels}

    def _vector(self, observation: Observation) -> SparseVector:
        vector = observation.representation(self.representation)
        if not isinstance(vector, SparseVector):
            raise TypeError(f"Representation '{self.representation}' is not a SparseVector")
        return vector

    def _binary_score(self, label: Label, vector: SparseVector) -> float:
        return vector.dot(self.weights[label]) + self.bias[label]

    def predict(self, observation: Observation) -> Dict[Label, float]:
        vector = self._vector(observation)
        return {label: self._binary_score(label, vector) for label in self.labels}

    def _learn_one(self, observation: Observation) -> None:
        vector = self._vector(observation)
        for label in self.labels:
            score = self._binary_score(label, vector)
            positive = observation.is_example_of(label)
            if abs(score) < self.margin or (score > 0) != positive:
                step = self.alpha if positive else -self.alpha
                w = self.weights[label]
                for feature, value in vector.items():
                    w[feature] = w.get(feature, 0.0) + step * value
                if not self.unbiased:
                    self.bias[label] += step

    def train(self, observations: Sequence[Observation]) -> None:
        self._require_labels()
        rng = np.random.default_rng(self.seed) if self.seed is not None else None
        for _ in range(self.epochs):
            for idx in _shuffled_order(len(observations), rng):
                self._learn_one(observations[int(idx)])

    def duplicate(self) -> "LinearPerceptron":
        copy = LinearPerceptron(
            self.representation, self.alpha, self.margin, self.unbiased, self.epochs, self.seed
        )
        copy.set_labels(self.labels)
        return copy

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "representation": self.representation,
            "alpha": self.alpha,
            "margin": self.margin,
            "unbiased": self.unbiased,
            "epochs": self.epochs,
            "seed": self.seed,
            "labels": list(self.labels),
            "weights": self.weights,
            "bias": self.bias,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinearPerceptron":
        clf = cls(
            data.get("representation", "rep"),
            data.get("alpha", 1.0),
            data.get("margin", 1.0),
            data.get("unbiased", False),
            data.get("epochs", 1),
            data.get("seed"),
        )
        clf.labels = list(data.get("labels", []))
        clf.weights = {label: dict(w) for label, w in data.get("weights", {}).items()}
        clf.bias = {label: float(b) for label, b in data.get("bias", {}).items()}
        return clf


class KernelPerceptron(BaseClassifier):
    """
    One-vs-all perceptron in dual form.

    Support vectors are shared across labels; each label keeps its own
    coefficient per support vector. Kernel values between an input and the
    support set are computed once per prediction and reused for every label.
    """
    kind = "kernel_perceptron"

    def __init__(
        self,
        kernel: Kernel,
        alpha: float = 1.0,
        margin: float = 1.0,
        unbiased: bool = False,
        epochs: int = 1,
        seed: Optional[int] = None,
    ):
        super().__init__()
        self.kernel = kernel
        self.alpha = _validate_alpha(alpha)
        self.margin = float(margin)
        self.unbiased = bool(unbiased)
        self.epochs = int(epochs)
        self.seed = seed
        self.support_vectors: List[Observation] = []
        # Keyed by id() of the stored observation; support_vectors keeps it alive.
        self._support_index: Dict[int, int] = {}
        self.coefficients: Dict[Label, List[float]] = {}
        self.bias: Dict[Label, float] = {}

    def reset(self) -> None:
        self.support_vectors = []
        self._support_index = {}
        self.coefficients = {label: [] for label in self.labels}
        self.bias = {label: 0.0 for label in self.labels}

    def _kernel_row(self, observation: Observation) -> np.ndarray:
        return np.array([self.kernel(sv, observation) for sv in self.support_vectors], dtype=float)

    def _scores_from_row(self, row: np.ndarray) -> Dict[Label, float]:
        if row.size == 0:
            return {label: self.bias[label] for label in self.labels}
        return {
            label: float(np.dot(np.asarray(self.coefficients[label]), row)) + self.bias[label]
            for label in self.labels
        }

    def predict(self, observation: Observation) -> Dict[Label, float]:
        return self._scores_from_row(self._kernel_row(observation))

    def _add_support_vector(self, observation: Observation) -> int:
        """Returns the support slot of ``observation``, adding it if it is new."""
        existing = self._support_index.get(id(observation))
        if existing is not None:
            return existing
        self.support_vectors.append(observation)
        for label in self.labels:
            self.coefficients[label].append(0.0)
        self._support_index[id(observation)] = len(self.support_vectors) - 1
        return self._support_index[id(observation)]

    def train(self, observations: Sequence[Observation]) -> None:
        self._require_labels()
        rng = np.random.default_rng(self.seed) if self.seed is not None else None
        for _ in range(self.epochs):
            for idx in _shuffled_order(len(observations), rng):
                idx = int(idx)
                observation = observations[idx]
                scores = self.predict(observation)
                for label in self.labels:
                    score = scores[label]
                    positive = observation.is_example_of(label)
                    if abs(score) < self.margin or (score > 0) != positive:
                        step = self.alpha if positive else -self.alpha
                        sv = self._add_support_vector(observation)
                        self.coefficients[label][sv] += step
                        if not self.unbiased:
                            self.bias[label] += step
        logger.debug("Kernel perceptron kept %d support vectors", len(self.support_vectors))

    def duplicate(self) -> "KernelPerceptron":
        copy = KernelPerceptron(self.kernel, self.alpha, self.margin, self.unbiased, self.epochs, self.seed)
        copy.set_labels(self.labels)
        return copy

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "kernel": self.kernel.to_dict(),
            "alpha": self.alpha,
            "margin": self.margin,
            "unbiased": self.unbiased,
            "epochs": self.epochs,
            "seed": self.seed,
            "labels": list(self.labels),
            "support_vectors": [sv.to_dict() for sv in self.support_vectors],
            "coefficients": self.coefficients,
            "bias": self.bias,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KernelPerceptron":
        clf = cls(
            kernel_from_dict(data["kernel"]),
            data.get("alpha", 1.0),
            data.get("margin", 1.0),
            data.get("unbiased", False),
            data.get("epochs", 1),
            data.get("seed"),
        )
        clf.labels = list(data.get("labels", []))
        clf.support_vectors = [Observation.from_dict(sv) for sv in data.get("support_vectors", [])]
        clf._support_index = {id(sv): i for i, sv in enumerate(clf.support_vectors)}
        clf.coefficients = {label: [float(c) for c in cs] for label, cs in data.get("coefficients", {}).items()}
        clf.bias = {label: float(b) for label, b in data.get("bias", {}).items()}
        return clf


class LogOddsClassifier(BaseClassifier):
    """
    Scores labels with smoothed per-feature log-odds.

    The score of a label is the sum, over the features present in the item,
    of the feature value times the feature's log-odds weight for that label.
    Features never seen in training contribute nothing.

    With ``iterations > 1`` training repeats: after each round the model
    scores the training items and the sample weight of every misclassified
    item is increased by ``error_boost_factor``.
    """
    kind = "log_odds"

    def __init__(
        self,
        representation: str = "rep",
        smoothing: float = 0.1,
        iterations: int = 1,
        error_boost_factor: float = 1.0,
    ):
        super().__init__()
        self.representation = representation
        self.smoothing = float(smoothing)
        self.iterations = max(1, int(iterations))
        self.error_boost_factor = float(error_boost_factor)
        self.weights: Dict[str, Dict[Label, float]] = {}

    def reset(self) -> None:
        self.weights = {}

    def predict(self, observation: Observation) -> Dict[Label, float]:
        vector = observation.representation(self.representation)
        scores = {label: 0.0 for label in self.labels}
        for feature, value in vector.items():
            feature_weights = self.weights.get(feature)
            if not feature_weights:
                continue
            for label in self.labels:
                scores[label] += value * feature_weights.get(label, 0.0)
        return scores

    def train(self, observations: Sequence[Observation]) -> None:
        self._require_labels()
        df = build_feature_table(observations, self.representation)
        items = sorted(df["item"].unique()) if not df.empty else []
        sample_weights = pd.Series(1.0, index=items)
        gold = pd.Series({idx: observations[idx].label for idx in items})

        for i in range(self.iterations):
            self.weights = build_weights(df, self.labels, alpha=self.smoothing, sample_weights=sample_weights)
            if i == self.iterations - 1:
                break

            predictions = pd.Series({
                idx: max(scores, key=scores.get)
                for idx, scores in ((idx, self.predict(observations[idx])) for idx in items)
            })
            errors = predictions != gold
            logger.info("Reweighting round %d accuracy on training set: %.2f%%", i + 1, 100 * (1 - errors.mean()))
            if not errors.any():
                break
            sample_weights[errors] += self.error_boost_factor

    def duplicate(self) -> "LogOddsClassifier":
        copy = LogOddsClassifier(self.representation, self.smoothing, self.iterations, self.error_boost_factor)
        copy.set_labels(self.labels)
        return copy

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "representation": self.representation,
            "smoothing": self.smoothing,
            "iterations": self.iterations,
            "error_boost_factor": self.error_boost_factor,
            "labels": list(self.labels),
            "weights": self.weights,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogOddsClassifier":
        clf = cls(
            data.get("representation", "rep"),
            data.get("smoothing", 0.1),
            data.get("iterations", 1),
            data.get("error_boost_factor", 1.0),
        )
        clf.labels = list(data.get("labels", []))
        clf.weights = {f: dict(w) for f, w in data.get("weights", {}).items()}
        return clf


CLASSIFIERS = {
    LinearPerceptron.kind: LinearPerceptron,
    KernelPerceptron.kind: KernelPerceptron,
    LogOddsClassifier.kind: LogOddsClassifier,
}


def classifier_from_dict(data: Dict[str, Any]) -> BaseClassifier:
    kind = data.get("kind")
    if kind not in CLASSIFIERS:
        raise ValueError(f"Unknown classifier kind: {kind}")
    return CLASSIFIERS[kind].from_dict(data)


def make_classifier(cfg) -> BaseClassifier:
    """Instantiates the base learner selected by a `Config`."""
    if cfg.learner == LinearPerceptron.kind:
        return LinearPerceptron(
            cfg.representation, cfg.alpha, cfg.margin, cfg.unbiased, cfg.epochs, cfg.seed
        )
    if cfg.learner == KernelPerceptron.kind:
        return KernelPerceptron(
            LinearKernel(cfg.representation), cfg.alpha, cfg.margin, cfg.unbiased, cfg.epochs, cfg.seed
        )
    if cfg.learner == LogOddsClassifier.kind:
        return LogOddsClassifier(
            cfg.representation, cfg.smoothing, cfg.iterations, cfg.error_boost_factor
        )
    raise ConfigurationError(f"Unknown learner '{cfg.learner}'. Expected one of {sorted(CLASSIFIERS)}.")
