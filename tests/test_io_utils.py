import json
from pathlib import Path

import pytest

from conftest import make_sequence
from seqtag.config import Config
from seqtag.errors import CorpusFormatError
from seqtag.io_utils import (
    label_corpus,
    load_corpus,
    load_model,
    save_corpus,
    save_model,
    save_predictions,
)
from seqtag.learner import train_sequence_model
from seqtag.types import SparseVector


def test_load_corpus_reads_sparse_representations(tmp_path: Path) -> None:
    path = tmp_path / "corpus.json"
    path.write_text(
        json.dumps(
            {
                "sequences": [
                    {
                        "observations": [
                            {"labels": ["DT"], "representations": {"rep": {"w=the": 1.0}}},
                            {"label": "NN", "representations": {"rep": {"w=cat": 1.0}, "dense": [0.1, 0.2]}},
                        ]
                    },
                    {"observations": []},
                ]
            }
        ),
        encoding="utf-8",
    )

    sequences = load_corpus(str(path))

    assert len(sequences) == 2
    assert sequences[0].labels == ("DT", "NN")
    assert isinstance(sequences[0][0].representation("rep"), SparseVector)
    assert sequences[0][1].representation("dense") == [0.1, 0.2]
    assert len(sequences[1]) == 0


def test_load_corpus_reports_structure_errors(tmp_path: Path) -> None:
    bad_path = tmp_path / "bad.json"
    bad_path.write_text(json.dumps({"not_sequences": []}), encoding="utf-8")

    with pytest.raises(CorpusFormatError):
        load_corpus(str(bad_path))

    bad_path.write_text(json.dumps({"sequences": [{"observations": ["word"]}]}), encoding="utf-8")
    with pytest.raises(TypeError):
        load_corpus(str(bad_path))


def test_load_corpus_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_corpus(str(tmp_path / "missing.json"))


def test_load_corpus_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{", encoding="utf-8")
    with pytest.raises(ValueError):
        load_corpus(str(path))


def test_save_corpus_round_trips(tmp_path: Path, toy_corpus) -> None:
    out_path = tmp_path / "out.json"
    save_corpus(str(out_path), toy_corpus)

    reloaded = load_corpus(str(out_path))
    assert [s.labels for s in reloaded] == [s.labels for s in toy_corpus]
    assert dict(reloaded[0][2].representation("rep")) == {"w=y": 1.0}


@pytest.mark.parametrize(
    "cfg",
    [
        Config(epochs=5),
        Config(encoder_strategy="kernel", learner="kernel_perceptron", epochs=3),
        Config(learner="log_odds", history_window_size=2),
    ],
)
def test_saved_model_decodes_identically(tmp_path: Path, toy_corpus, cfg) -> None:
    model = train_sequence_model(toy_corpus, cfg)
    path = tmp_path / "model.json"
    save_model(str(path), model)

    restored = load_model(str(path))
    probe = make_sequence((["w=y"], None), (["w=x"], None), (["w=x"], None))

    assert restored.encoder == model.encoder
    assert restored.trained_window_size == model.trained_window_size
    original = model.decode(probe)
    reloaded = restored.decode(probe)
    assert [p.labels for p in reloaded] == [p.labels for p in original]
    assert reloaded.scores == pytest.approx(original.scores)


def test_label_corpus_and_predictions(tmp_path: Path, toy_corpus) -> None:
    model = train_sequence_model(toy_corpus, Config(epochs=5))
    unlabeled = [make_sequence((["w=x"], None), (["w=y"], None))]
    predictions = [model.decode(s, beam_size=3, max_emission_candidates=2) for s in unlabeled]

    labeled = label_corpus(unlabeled, predictions)
    assert labeled[0].labels == predictions[0].best_path().labels

    out_path = tmp_path / "paths.json"
    save_predictions(str(out_path), predictions)
    data = json.loads(out_path.read_text(encoding="utf-8"))

    paths = data["predictions"][0]["paths"]
    assert len(paths) == 3
    assert paths[0]["labels"] == list(labeled[0].labels)
    assert paths[0]["score"] >= paths[-1]["score"]
    assert len(paths[0]["probabilities"]) == 2
