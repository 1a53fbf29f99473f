"""Decoding hypotheses and the ranked result of a beam search.

A `SequencePath` is a persistent, append-only list of `SequenceEmission`
entries plus the accumulated log-probability of the hypothesis. Appending
never touches the parent path: every child shares the parent's prefix through
a chain of immutable nodes, so branching a hypothesis into several candidates
costs one node per candidate instead of a full copy of the labeling.
"""
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from .types import Label, SequenceEmission


@dataclass(frozen=True, eq=False)
class _Node:
    emission: SequenceEmission
    parent: Optional["_Node"]


@dataclass(frozen=True, eq=False)
class SequencePath:
    """One hypothesis in the beam.

    Attributes:
        score: Sum of ``log(probability)`` over the appended emissions. It can
               only decrease as the path grows.
        length: Number of positions labeled so far.
    """
    score: float = 0.0
    length: int = 0
    _tail: Optional[_Node] = None

    def append(self, label: Label, probability: float) -> "SequencePath":
        """Returns a new path extended with ``(label, probability)``."""
        emission = SequenceEmission(label, float(probability))
        # A probability that underflowed to zero ranks the path last.
        step = math.log(probability) if probability > 0 else -math.inf
        return SequencePath(
            score=self.score + step,
            length=self.length + 1,
            _tail=_Node(emission, self._tail),
        )

    def _reversed_nodes(self) -> Iterator[_Node]:
        node = self._tail
        while node is not None:
            yield node
            node = node.parent

    @property
    def emissions(self) -> Tuple[SequenceEmission, ...]:
        return tuple(reversed([n.emission for n in self._reversed_nodes()]))

    @property
    def labels(self) -> Tuple[Label, ...]:
        return tuple(e.label for e in self.emissions)

    def assigned_label(self, position: int) -> Label:
        return self.emissions[position].label

    def last_labels(self, n: int) -> Tuple[Label, ...]:
        """Returns the ``n`` most recent labels, oldest first.

        Only the last ``n`` nodes are visited, so history lookups during
        decoding do not depend on the path length.
        """
        out: List[Label] = []
        for node in self._reversed_nodes():
            if len(out) >= n:
                break
            out.append(node.emission.label)
        out.reverse()
        return tuple(out)

    def __len__(self) -> int:
        return self.length

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SequencePath):
            return NotImplemented
        return self.score == other.score and self.emissions == other.emissions

    def __hash__(self) -> int:
        return hash((self.score, self.emissions))

    def __str__(self) -> str:
        body = " ".join(str(e) for e in self.emissions)
        return f"{body}\t{self.score:.6f}"


def rank_paths(paths: Sequence[SequencePath]) -> List[SequencePath]:
    """Sorts paths by score, best first.

    ``sorted`` is stable, so paths with equal scores keep the order in which
    the beam expansion produced them.
    """
    return sorted(paths, key=lambda p: p.score, reverse=True)


class SequencePrediction:
    """The ranked paths returned for one decoded sequence."""

    def __init__(self, paths: Optional[Sequence[SequencePath]] = None):
        self.paths: List[SequencePath] = list(paths or [])

    def best_path(self) -> SequencePath:
        if not self.paths:
            raise IndexError("The prediction does not contain any path")
        return self.paths[0]

    @property
    def scores(self) -> List[float]:
        return [p.score for p in self.paths]

    def __len__(self) -> int:
        return len(self.paths)

    def __iter__(self) -> Iterator[SequencePath]:
        return iter(self.paths)

    def __getitem__(self, idx: int) -> SequencePath:
        return self.paths[idx]

    def __str__(self) -> str:
        lines = []
        for i, path in enumerate(self.paths):
            prefix = "Best Path" if i == 0 else "Altern. Path"
            lines.append(f"{prefix}\t{path}")
        return "\n".join(lines)
