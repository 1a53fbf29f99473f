from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

__all__ = ["Label", "SparseVector", "Observation", "SequenceExample", "SequenceEmission"]

Label = str


class SparseVector(Mapping):
    """
    An immutable bag of named, real-valued features.

    Sparse vectors are the representation the linear learners and the
    explicit-feature history encoder agree on. Keys are arbitrary feature
    strings (e.g. ``"w=the"``) and values are their weights; absent keys are
    implicitly zero.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, float]] = None):
        self._data: Dict[str, float] = {str(k): float(v) for k, v in (data or {}).items()}

    def __getitem__(self, key: str) -> float:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        body = " ".join(f"{k}:{v:g}" for k, v in self._data.items())
        return f"SparseVector({body})"

    def dot(self, other: Mapping[str, float]) -> float:
        """Returns the inner product with another sparse mapping."""
        if len(other) < len(self._data):
            return sum(v * self._data.get(k, 0.0) for k, v in other.items())
        return sum(v * other.get(k, 0.0) for k, v in self._data.items())

    def with_feature(self, key: str, weight: float) -> "SparseVector":
        """Returns a new vector with ``weight`` added to feature ``key``."""
        data = dict(self._data)
        data[key] = data.get(key, 0.0) + float(weight)
        return SparseVector(data)

    def copy(self) -> "SparseVector":
        return SparseVector(self._data)

    def to_dict(self) -> Dict[str, float]:
        return dict(self._data)


@dataclass(frozen=True)
class Observation:
    """
    One item of a sequence, e.g. a word in a sentence.

    Attributes:
        representations: Mapping from representation name to its value. The
                         names are the contract between the history encoder
                         and the base learner (``"rep"`` by default).
        labels: The gold label(s) of the item. Empty for unlabeled input.
    """
    representations: Mapping[str, Any]
    labels: Tuple[Label, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "representations", dict(self.representations))
        object.__setattr__(self, "labels", tuple(self.labels))

    @property
    def label(self) -> Optional[Label]:
        """The first gold label, or ``None`` if the item is unlabeled."""
        return self.labels[0] if self.labels else None

    def is_example_of(self, label: Label) -> bool:
        return label in self.labels

    def representation(self, name: str) -> Any:
        try:
            return self.representations[name]
        except KeyError:
            raise KeyError(f"Observation has no representation named '{name}'")

    def with_representation(self, name: str, value: Any) -> "Observation":
        """Returns a copy of this observation whose ``name`` entry is ``value``."""
        reps = dict(self.representations)
        reps[name] = value
        return Observation(representations=reps, labels=self.labels)

    def duplicate(self) -> "Observation":
        reps = {
            name: rep.copy() if hasattr(rep, "copy") else rep
            for name, rep in self.representations.items()
        }
        return Observation(representations=reps, labels=self.labels)

    def to_dict(self) -> Dict[str, Any]:
        reps = {
            name: rep.to_dict() if isinstance(rep, SparseVector) else rep
            for name, rep in self.representations.items()
        }
        return {"labels": list(self.labels), "representations": reps}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Observation":
        """
        Builds an observation from its JSON form.

        Mapping-valued representations become `SparseVector` instances; any
        other value (e.g. a list of floats) is kept as is.
        """
        reps = {
            name: SparseVector(rep) if isinstance(rep, Mapping) else rep
            for name, rep in data.get("representations", {}).items()
        }
        labels = data.get("labels")
        if labels is None:
            labels = [data["label"]] if data.get("label") is not None else []
        return cls(representations=reps, labels=tuple(str(label) for label in labels))


@dataclass(frozen=True)
class SequenceExample:
    """An ordered run of observations sharing one gold labeling."""
    observations: Tuple[Observation, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "observations", tuple(self.observations))

    def __len__(self) -> int:
        return len(self.observations)

    def __getitem__(self, idx: int) -> Observation:
        return self.observations[idx]

    def __iter__(self) -> Iterator[Observation]:
        return iter(self.observations)

    @property
    def labels(self) -> Tuple[Optional[Label], ...]:
        return tuple(obs.label for obs in self.observations)

    def duplicate(self) -> "SequenceExample":
        return SequenceExample(tuple(obs.duplicate() for obs in self.observations))


@dataclass(frozen=True)
class SequenceEmission:
    """A label assigned at one position together with its emission probability."""
    label: Label
    probability: float

    def __str__(self) -> str:
        return f"{self.label}({self.probability:.4f})"
