import pytest

from seqtag.classifiers import (
    Classifier,
    KernelPerceptron,
    LinearPerceptron,
    LogOddsClassifier,
    classifier_from_dict,
)
from seqtag.errors import ConfigurationError
from seqtag.kernels import KernelCombination, LinearKernel, kernel_from_dict
from seqtag.types import Observation, SparseVector


def _obs(label, **features):
    return Observation({"rep": SparseVector(features)}, (label,) if label else ())


TRAIN = [
    _obs("A", x=1.0, shared=1.0),
    _obs("B", y=1.0, shared=1.0),
    _obs("A", x=1.0),
    _obs("B", y=1.0),
]


def _argmax(scores):
    return max(scores, key=scores.get)


@pytest.mark.parametrize(
    "make",
    [
        lambda: LinearPerceptron(epochs=5),
        lambda: KernelPerceptron(LinearKernel("rep"), epochs=5),
        lambda: LogOddsClassifier(),
    ],
)
def test_learners_separate_disjoint_features(make):
    clf = make()
    clf.set_labels(["A", "B"])
    clf.train(TRAIN)

    assert _argmax(clf.predict(_obs(None, x=1.0))) == "A"
    assert _argmax(clf.predict(_obs(None, y=1.0))) == "B"

    restored = classifier_from_dict(clf.to_dict())
    probe = _obs(None, x=1.0, shared=1.0)
    assert restored.predict(probe) == pytest.approx(clf.predict(probe))


def test_perceptron_rejects_invalid_learning_rate():
    with pytest.raises(ConfigurationError):
        LinearPerceptron(alpha=0.0)
    with pytest.raises(ConfigurationError):
        KernelPerceptron(LinearKernel("rep"), alpha=1.5)


def test_training_without_labels_fails():
    with pytest.raises(ValueError):
        LinearPerceptron().train(TRAIN)


def test_seeded_shuffling_is_reproducible():
    first = LinearPerceptron(epochs=3, seed=7)
    second = LinearPerceptron(epochs=3, seed=7)
    for clf in (first, second):
        clf.set_labels(["A", "B"])
        clf.train(TRAIN)
    assert first.weights == second.weights


def test_unbiased_perceptron_keeps_zero_bias():
    clf = LinearPerceptron(unbiased=True, epochs=2)
    clf.set_labels(["A", "B"])
    clf.train(TRAIN)
    assert clf.bias == {"A": 0.0, "B": 0.0}


def test_duplicate_returns_untrained_copy():
    clf = LinearPerceptron(epochs=2)
    clf.set_labels(["A", "B"])
    clf.train(TRAIN)

    copy = clf.duplicate()
    assert copy.labels == ["A", "B"]
    assert copy.weights == {"A": {}, "B": {}}


def test_log_odds_ignores_unseen_features():
    clf = LogOddsClassifier()
    clf.set_labels(["A", "B"])
    clf.train(TRAIN)
    assert clf.predict(_obs(None, unseen=1.0)) == {"A": 0.0, "B": 0.0}


def test_unknown_classifier_kind_is_rejected():
    with pytest.raises(ValueError):
        classifier_from_dict({"kind": "svm"})


def test_kernel_combination_round_trips():
    combined = KernelCombination()
    combined.add_kernel(1.0, LinearKernel("rep"))
    combined.add_kernel(3.0, LinearKernel("__trans_rep__"))
    combined.normalize_weights()

    restored = kernel_from_dict(combined.to_dict())
    a = Observation({"rep": SparseVector({"x": 1.0}), "__trans_rep__": SparseVector({"_A": 1.0})})
    assert combined(a, a) == pytest.approx(1.0)
    assert restored(a, a) == pytest.approx(combined(a, a))


def test_linear_kernel_treats_missing_representation_as_zero():
    a = Observation({"rep": SparseVector({"x": 2.0})})
    b = Observation({"other": SparseVector({"x": 2.0})})
    assert LinearKernel("rep")(a, b) == 0.0


def test_linear_kernel_handles_dense_vectors():
    a = Observation({"rep": [1.0, 2.0]})
    b = Observation({"rep": [3.0, 0.5]})
    assert LinearKernel("rep")(a, b) == pytest.approx(4.0)


def test_linear_kernel_rejects_mixed_vector_kinds():
    sparse = Observation({"rep": SparseVector({"x": 1.0})})
    dense = Observation({"rep": [1.0]})
    with pytest.raises(TypeError, match="sparse and a dense"):
        LinearKernel("rep")(sparse, dense)


def test_kernel_perceptron_retraining_reuses_support_vectors():
    clf = KernelPerceptron(LinearKernel("rep"), epochs=1)
    clf.set_labels(["A", "B"])
    clf.train(TRAIN)
    first = len(clf.support_vectors)

    clf.train(TRAIN)

    assert first <= len(clf.support_vectors) <= len(TRAIN)
    assert len({id(sv) for sv in clf.support_vectors}) == len(clf.support_vectors)
    assert all(len(cs) == len(clf.support_vectors) for cs in clf.coefficients.values())


def test_bundled_learners_meet_the_classifier_contract():
    for clf in (LinearPerceptron(), KernelPerceptron(LinearKernel("rep")), LogOddsClassifier()):
        assert isinstance(clf, Classifier)
