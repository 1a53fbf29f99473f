"""Smoke tests for the command-line entrypoints.

The tests train a tiny model with ``scripts/train_model.py``, decode with
``main.py`` and evaluate with ``scripts/evaluate_model.py``, all through
``sys.argv`` so the argument wiring stays covered.
"""
from __future__ import annotations

import csv
import json
import sys
from pathlib import Path

import importlib

import pytest

from conftest import make_sequence
from seqtag.io_utils import load_corpus, save_corpus


@pytest.fixture(autouse=True)
def restore_argv():
    original = sys.argv[:]
    try:
        yield
    finally:
        sys.argv = original


def _write_config(tmp_path: Path) -> Path:
    config = tmp_path / "config.yaml"
    config.write_text(
        "learner:\n  epochs: 5\ndecoder:\n  beam_size: 4\npaths:\n  model: model.json\n",
        encoding="utf-8",
    )
    return config


def test_main_requires_input_arguments():
    """Invoking ``main.main`` without the mandatory flags exits gracefully."""
    sys.argv = ["main"]
    with pytest.raises(SystemExit):
        import main as main_module

        main_module.main()


def test_main_reports_missing_files(tmp_path: Path, capsys):
    config = _write_config(tmp_path)
    sys.argv = [
        "main",
        "--input", str(tmp_path / "missing.json"),
        "--output", str(tmp_path / "out.json"),
        "--config", str(config),
    ]

    main_module = importlib.import_module("main")
    with pytest.raises(SystemExit) as exc:
        main_module.main()
    assert exc.value.code == 1
    assert "Error:" in capsys.readouterr().err


def test_train_decode_and_evaluate(tmp_path: Path, toy_corpus):
    config = _write_config(tmp_path)
    corpus_dir = tmp_path / "corpus"
    corpus_dir.mkdir()
    save_corpus(str(corpus_dir / "train.json"), toy_corpus)

    train_model = importlib.import_module("scripts.train_model")
    assert train_model.collect_corpus_paths(corpus_dir) == [corpus_dir / "train.json"]

    sys.argv = [
        "train_model",
        "--corpus", str(corpus_dir),
        "--model", str(tmp_path / "model.json"),
        "--config", str(config),
    ]
    train_model.main()
    assert json.loads((tmp_path / "model.json").read_text(encoding="utf-8"))["classifier"]["labels"] == ["A", "B"]

    unlabeled = tmp_path / "input.json"
    save_corpus(str(unlabeled), [make_sequence((["w=x"], None), (["w=y"], None))])
    output = tmp_path / "out" / "labeled.json"
    sys.argv = [
        "main",
        "--input", str(unlabeled),
        "--output", str(output),
        "--config", str(config),
        "--save-paths",
    ]
    importlib.import_module("main").main()

    labeled = load_corpus(str(output))
    assert labeled[0].labels == ("A", "B")
    paths = json.loads(output.with_suffix(".paths.json").read_text(encoding="utf-8"))
    assert len(paths["predictions"][0]["paths"]) == 4

    gold = tmp_path / "gold.json"
    save_corpus(str(gold), [make_sequence((["w=x"], "B"), (["w=y"], "B"))])
    disagreements = tmp_path / "disagreements.csv"
    sys.argv = [
        "evaluate_model",
        "--corpus", str(gold),
        "--model", str(tmp_path / "model.json"),
        "--config", str(config),
        "--disagreements-out", str(disagreements),
    ]
    importlib.import_module("scripts.evaluate_model").main()

    with open(disagreements, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows == [{"sequence": "0", "position": "0", "generated": "A", "reference": "B"}]


def test_main_names_missing_model_setting(tmp_path: Path, capsys):
    config = tmp_path / "config.yaml"
    config.write_text("decoder:\n  beam_size: 4\n", encoding="utf-8")
    sys.argv = [
        "main",
        "--input", str(tmp_path / "input.json"),
        "--output", str(tmp_path / "out.json"),
        "--config", str(config),
    ]

    main_module = importlib.import_module("main")
    with pytest.raises(SystemExit) as exc:
        main_module.main()
    assert exc.value.code == 1
    assert "paths.model" in capsys.readouterr().err
