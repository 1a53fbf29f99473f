"""Kernel functions over named observation representations."""
from __future__ import annotations
from collections.abc import Mapping
from typing import Any, Dict, List, Tuple

import numpy as np

from .types import Observation, SparseVector


class Kernel:
    """Similarity between two observations."""

    def __call__(self, a: Observation, b: Observation) -> float:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


class LinearKernel(Kernel):
    """Dot product of the vectors stored under ``representation``.

    Both sides may be sparse (a mapping of feature to value) or dense (a
    sequence of floats of equal length), but not one of each. An observation
    that lacks the representation contributes a zero vector.
    """

    def __init__(self, representation: str):
        self.representation = representation

    def __call__(self, a: Observation, b: Observation) -> float:
        va = a.representations.get(self.representation)
        vb = b.representations.get(self.representation)
        if va is None or vb is None:
            return 0.0
        a_sparse, b_sparse = isinstance(va, Mapping), isinstance(vb, Mapping)
        if a_sparse and b_sparse:
            if not isinstance(va, SparseVector):
                va = SparseVector(va)
            return va.dot(vb)
        if a_sparse or b_sparse:
            raise TypeError(
                f"Cannot compare a sparse and a dense '{self.representation}' representation "
                f"({type(va).__name__} vs {type(vb).__name__})"
            )
        return float(np.dot(np.asarray(va, dtype=float), np.asarray(vb, dtype=float)))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "linear", "representation": self.representation}

    def __repr__(self) -> str:
        return f"LinearKernel({self.representation!r})"


class KernelCombination(Kernel):
    """A weighted sum of kernels."""

    def __init__(self, components: List[Tuple[float, Kernel]] | None = None):
        self.components: List[Tuple[float, Kernel]] = list(components or [])

    def add_kernel(self, weight: float, kernel: Kernel) -> None:
        self.components.append((float(weight), kernel))

    def normalize_weights(self) -> None:
        """Rescales the weights so that they sum to one."""
        total = sum(w for w, _ in self.components)
        if total <= 0:
            raise ValueError("Cannot normalize kernel weights that do not sum to a positive value")
        self.components = [(w / total, k) for w, k in self.components]

    @property
    def weights(self) -> List[float]:
        return [w for w, _ in self.components]

    def __call__(self, a: Observation, b: Observation) -> float:
        return sum(w * k(a, b) for w, k in self.components)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "combination",
            "components": [{"weight": w, "kernel": k.to_dict()} for w, k in self.components],
        }

    def __repr__(self) -> str:
        parts = ", ".join(f"{w:g}*{k!r}" for w, k in self.components)
        return f"KernelCombination({parts})"


def kernel_from_dict(data: Dict[str, Any]) -> Kernel:
    kind = data.get("type")
    if kind == "linear":
        return LinearKernel(data["representation"])
    if kind == "combination":
        return KernelCombination(
            [(float(c["weight"]), kernel_from_dict(c["kernel"])) for c in data["components"]]
        )
    raise ValueError(f"Unknown kernel type: {kind}")
