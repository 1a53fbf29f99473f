"""Provides utility functions for loading and saving corpora and models.

Corpora are stored as JSON with the sequences under a "sequences" key; each
sequence lists its observations under "observations", and each observation
holds its gold "labels" and its named "representations". Mapping-valued
representations are read as sparse vectors:

    {"sequences": [{"observations": [
        {"labels": ["DT"], "representations": {"rep": {"w=the": 1.0}}}
    ]}]}

A trained `SequenceModel` is saved as one JSON document holding the encoder
configuration together with the classifier state, so the pair can never be
separated on disk.
"""
import json
import logging
from typing import Any, Dict, List, Sequence

from .errors import CorpusFormatError
from .model import SequenceModel
from .path import SequencePrediction
from .types import Observation, SequenceExample

logger = logging.getLogger(__name__)


def _read_json(path: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"File not found at: {path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Error decoding JSON from {path}: {e}")


def sequence_from_dict(data: Dict[str, Any], where: str = "") -> SequenceExample:
    items = data.get("observations") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise CorpusFormatError(f"Expected an 'observations' list{where}")
    observations = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise CorpusFormatError(f"Observation {i}{where} is not a dictionary.")
        observations.append(Observation.from_dict(item))
    return SequenceExample(tuple(observations))


def sequence_to_dict(sequence: SequenceExample) -> Dict[str, Any]:
    return {"observations": [obs.to_dict() for obs in sequence]}


def load_corpus(path: str) -> List[SequenceExample]:
    """
    Loads a list of sequences from a JSON corpus file.

    Args:
        path: The path to the input JSON file.

    Returns:
        A list of `SequenceExample` instances, in file order.

    Raises:
        FileNotFoundError: If the file at the specified path does not exist.
        ValueError: If the file is not valid JSON.
        CorpusFormatError: If the JSON structure is incorrect (e.g. the
                           "sequences" key is missing or not a list).
    """
    data = _read_json(path)
    items = data.get("sequences") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise CorpusFormatError(f"Expected a 'sequences' key with a list of objects in {path}")
    return [sequence_from_dict(item, f" in sequence {i} of {path}") for i, item in enumerate(items)]


def save_corpus(path: str, sequences: Sequence[SequenceExample]) -> None:
    data = {"sequences": [sequence_to_dict(s) for s in sequences]}
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def label_corpus(sequences: Sequence[SequenceExample], predictions: Sequence[SequencePrediction]) -> List[SequenceExample]:
    """Returns copies of ``sequences`` whose labels are the best-path labels."""
    labeled = []
    for sequence, prediction in zip(sequences, predictions):
        best = prediction.best_path().labels
        labeled.append(SequenceExample(tuple(
            Observation(obs.representations, (label,)) for obs, label in zip(sequence, best)
        )))
    return labeled


def save_predictions(path: str, predictions: Sequence[SequencePrediction]) -> None:
    """Writes every ranked path of every prediction, with emissions and scores."""
    data = {
        "predictions": [
            {
                "paths": [
                    {
                        "labels": list(p.labels),
                        "probabilities": [e.probability for e in p.emissions],
                        "score": p.score,
                    }
                    for p in prediction
                ]
            }
            for prediction in predictions
        ]
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def save_model(path: str, model: SequenceModel) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(model.to_dict(), f, ensure_ascii=False, indent=2)


def load_model(path: str) -> SequenceModel:
    """
    Loads a `SequenceModel` saved by `save_model`.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON or names an unknown
                    classifier, kernel or encoder.
        KeyError: If a required section is missing.
    """
    data = _read_json(path)
    if not isinstance(data, dict):
        raise ValueError(f"Model file {path} must contain a JSON object")
    return SequenceModel.from_dict(data)
