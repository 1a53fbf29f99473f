import pytest

from conftest import make_sequence
from seqtag.evaluation import ClassStats, SequenceEvaluator
from seqtag.path import SequencePath, SequencePrediction


def _prediction(*labels):
    path = SequencePath()
    for label in labels:
        path = path.append(label, 0.9)
    return SequencePrediction([path])


def test_evaluator_counts_positions():
    gold = make_sequence((["w=x"], "A"), (["w=x"], "A"), (["w=y"], "B"))
    evaluator = SequenceEvaluator(["A", "B"])
    evaluator.add_count(gold, _prediction("A", "B", "B"))

    assert evaluator.total == 3
    assert evaluator.correct == 2
    assert evaluator.accuracy == pytest.approx(2 / 3)

    a, b = evaluator.class_stats["A"], evaluator.class_stats["B"]
    assert (a.tp, a.fp, a.fn, a.tn) == (1, 0, 1, 1)
    assert (b.tp, b.fp, b.fn, b.tn) == (1, 1, 0, 1)
    assert a.precision == 1.0
    assert b.recall == 1.0


def test_report_aggregates_f1():
    evaluator = SequenceEvaluator(["A", "B"])
    evaluator.add_all([
        (make_sequence((["w=x"], "A"), (["w=y"], "B")), _prediction("A", "B")),
    ])
    report = evaluator.report()

    assert report["accuracy"] == 1.0
    assert report["micro_f1"] == 1.0
    assert report["macro_f1"] == 1.0
    assert report["labels"]["A"]["support"] == 1


def test_length_mismatch_is_rejected():
    evaluator = SequenceEvaluator(["A"])
    with pytest.raises(ValueError):
        evaluator.add_count(make_sequence((["w=x"], "A")), _prediction("A", "A"))


def test_empty_stats_have_zero_scores():
    stats = ClassStats()
    assert stats.precision == stats.recall == stats.f1 == 0.0
    assert SequenceEvaluator([]).accuracy == 0.0
