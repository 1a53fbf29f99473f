"""Per-position evaluation of decoded sequences against gold labels.

Every position of every sequence counts as one classification decision: the
label of the best path at that position is compared with the gold label(s) of
the item. The evaluator accumulates true/false positives and negatives per
label and reports accuracy together with precision, recall and F1.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from .path import SequencePrediction
from .types import Label, SequenceExample


@dataclass
class ClassStats:
    tp: int = 0
    fp: int = 0
    fn: int = 0
    tn: int = 0

    @property
    def precision(self) -> float:
        return self.tp / (self.tp + self.fp) if self.tp + self.fp else 0.0

    @property
    def recall(self) -> float:
        return self.tp / (self.tp + self.fn) if self.tp + self.fn else 0.0

    @property
    def f1(self) -> float:
        p, r = self.precision, self.recall
        return 2 * p * r / (p + r) if p + r else 0.0


class SequenceEvaluator:
    """
    Accumulates per-label statistics over decoded sequences.

    Attributes:
        labels: The labels to report on.
        class_stats: Confusion counts per label.
        total: Number of evaluated positions.
        correct: Number of positions whose predicted label is a gold label.
    """

    def __init__(self, labels: Sequence[Label]):
        self.labels: List[Label] = list(labels)
        self.class_stats: Dict[Label, ClassStats] = {label: ClassStats() for label in self.labels}
        self.total = 0
        self.correct = 0

    def add_count(self, gold: SequenceExample, prediction: SequencePrediction) -> None:
        """
        Adds the positions of one sequence to the counts.

        Raises:
            ValueError: If the best path does not cover every position.
        """
        predicted = prediction.best_path().labels
        if len(predicted) != len(gold):
            raise ValueError(
                f"Best path labels {len(predicted)} positions but the sequence has {len(gold)}"
            )
        for obs, label in zip(gold, predicted):
            for candidate in self.labels:
                stats = self.class_stats[candidate]
                if obs.is_example_of(candidate):
                    if label == candidate:
                        stats.tp += 1
                    else:
                        stats.fn += 1
                elif label == candidate:
                    stats.fp += 1
                else:
                    stats.tn += 1
            self.total += 1
            if obs.is_example_of(label):
                self.correct += 1

    def add_all(self, pairs: Iterable[Tuple[SequenceExample, SequencePrediction]]) -> None:
        for gold, prediction in pairs:
            self.add_count(gold, prediction)

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0

    def micro_f1(self) -> float:
        tp = sum(s.tp for s in self.class_stats.values())
        fp = sum(s.fp for s in self.class_stats.values())
        fn = sum(s.fn for s in self.class_stats.values())
        return ClassStats(tp=tp, fp=fp, fn=fn).f1

    def macro_f1(self) -> float:
        if not self.class_stats:
            return 0.0
        return sum(s.f1 for s in self.class_stats.values()) / len(self.class_stats)

    def report(self) -> Dict[str, Any]:
        """Summarizes the counts as a JSON-serializable dictionary."""
        return {
            "total": self.total,
            "correct": self.correct,
            "accuracy": self.accuracy,
            "micro_f1": self.micro_f1(),
            "macro_f1": self.macro_f1(),
            "labels": {
                label: {
                    "precision": s.precision,
                    "recall": s.recall,
                    "f1": s.f1,
                    "support": s.tp + s.fn,
                }
                for label, s in self.class_stats.items()
            },
        }
