from conftest import make_sequence
from seqtag.data_validation import iter_positions, validate_corpus
from seqtag.types import Observation, SequenceExample


def test_iter_positions_yields_coordinates(toy_corpus):
    coords = [(s, p) for s, p, _ in iter_positions(toy_corpus)]
    assert coords == [(0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (1, 2)]


def test_validate_accepts_clean_corpus(toy_corpus):
    assert validate_corpus(toy_corpus, "rep") == {"issue_count": 0, "issues": []}


def test_validate_flags_structural_issues():
    corpus = [
        SequenceExample(()),
        make_sequence((["w=x"], None)),
        SequenceExample((Observation({"feats": [1.0]}, ("A",)), Observation({"rep": [0.5]}, ("B",)))),
    ]

    report = validate_corpus(corpus, "rep")
    issue_types = {issue["type"] for issue in report["issues"]}

    assert issue_types == {
        "empty_sequence_warning",
        "missing_label_error",
        "missing_representation_error",
        "non_sparse_representation_error",
    }
    assert report["issue_count"] == 4


def test_unlabeled_corpus_is_fine_for_decoding():
    corpus = [make_sequence((["w=x"], None), (["w=y"], None))]
    assert validate_corpus(corpus, "rep", require_labels=False)["issue_count"] == 0


def test_dense_vectors_are_fine_for_the_kernel_strategy():
    corpus = [SequenceExample((Observation({"rep": [0.5, 1.0]}, ("A",)),))]

    assert validate_corpus(corpus, "rep")["issues"][0]["type"] == "non_sparse_representation_error"
    assert validate_corpus(corpus, "rep", encoder_strategy="kernel")["issue_count"] == 0
