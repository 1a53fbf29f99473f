"""Test configuration helpers for ensuring local imports resolve."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path() -> None:
    project_root = Path(__file__).resolve().parents[1]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


_ensure_project_root_on_path()

from seqtag.types import Observation, SequenceExample, SparseVector  # noqa: E402


def make_sequence(*items) -> SequenceExample:
    """Builds a sequence from ``(features, label)`` pairs; ``label`` may be None."""
    observations = []
    for features, label in items:
        rep = SparseVector({f: 1.0 for f in features})
        observations.append(Observation({"rep": rep}, (label,) if label is not None else ()))
    return SequenceExample(tuple(observations))


@pytest.fixture
def toy_corpus():
    return [
        make_sequence((["w=x"], "A"), (["w=x"], "A"), (["w=y"], "B")),
        make_sequence((["w=y"], "B"), (["w=x"], "A"), (["w=x"], "A")),
    ]
