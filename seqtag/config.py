"""Manages the loading and validation of application configuration.

This module defines the `Config` dataclass, which serves as a centralized,
type-safe container for every training and decoding setting. It also provides
the `load_config` function, which reads the settings from a `config.yaml`
file. The YAML file may group settings under ``encoder``, ``learner`` and
``decoder`` sections; they are flattened into the dataclass fields.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigurationError
from .history import ENCODER_STRATEGIES

DEFAULT_BEAM_SIZE = 20
DEFAULT_MAX_EMISSION_CANDIDATES = 5
LEARNERS = ("perceptron", "kernel_perceptron", "log_odds")


@dataclass
class Config:
    """
    A typed configuration object that holds all settings of the sequence labeler.

    Attributes:
        history_window_size: How many preceding labels feed the history of an
                             item. 0 turns the labeler into a plain,
                             position-independent classifier.
        transition_weight: Importance of the history-derived feature or kernel.
        beam_size: The number of hypotheses to keep after each position.
        max_emission_candidates: The number of best labels each hypothesis may
                                 branch into at each position.
        encoder_strategy: ``"explicit"`` (history as an extra sparse feature)
                          or ``"kernel"`` (history in its own representation).
        representation: Name of the sparse representation of an observation.
        learner: The base learner (``perceptron``, ``kernel_perceptron`` or
                 ``log_odds``).
        epochs: Passes over the training data for the perceptron learners.
        alpha: Perceptron learning rate, in (0, 1].
        margin: Perceptron margin.
        unbiased: Disables the perceptron bias term.
        smoothing: Laplace smoothing of the log-odds learner.
        iterations: Reweighting rounds of the log-odds learner.
        error_boost_factor: Sample weight added to misclassified items between
                            reweighting rounds.
        seed: Shuffling seed for the perceptron learners; ``None`` keeps the
              corpus order.
        workers: Number of threads used to decode a batch of sequences.
        paths: Relative paths to model files.
    """
    history_window_size: int = 1
    transition_weight: float = 1.0
    beam_size: int = DEFAULT_BEAM_SIZE
    max_emission_candidates: int = DEFAULT_MAX_EMISSION_CANDIDATES
    encoder_strategy: str = "explicit"
    representation: str = "rep"
    learner: str = "perceptron"
    epochs: int = 10
    alpha: float = 1.0
    margin: float = 1.0
    unbiased: bool = False
    smoothing: float = 0.1
    iterations: int = 1
    error_boost_factor: float = 1.0
    seed: Optional[int] = None
    workers: int = 1
    paths: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> "Config":
        """
        Checks the settings for values the labeler cannot work with.

        Returns:
            The config itself, so calls can be chained.

        Raises:
            ConfigurationError: On the first invalid setting.
        """
        if self.history_window_size < 0:
            raise ConfigurationError(f"history_window_size must be >= 0, got {self.history_window_size}")
        if self.beam_size < 1:
            raise ConfigurationError(f"beam_size must be >= 1, got {self.beam_size}")
        if self.max_emission_candidates < 1:
            raise ConfigurationError(
                f"max_emission_candidates must be >= 1, got {self.max_emission_candidates}"
            )
        if self.encoder_strategy not in ENCODER_STRATEGIES:
            raise ConfigurationError(
                f"encoder_strategy must be one of {ENCODER_STRATEGIES}, got '{self.encoder_strategy}'"
            )
        if self.learner not in LEARNERS:
            raise ConfigurationError(f"learner must be one of {LEARNERS}, got '{self.learner}'")
        if not 0 < self.alpha <= 1:
            raise ConfigurationError(f"alpha must lie in (0, 1], got {self.alpha}")
        if self.epochs < 1:
            raise ConfigurationError(f"epochs must be >= 1, got {self.epochs}")
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")
        return self


_SECTION_KEYS = {
    "encoder": {
        "history_window_size": "history_window_size",
        "window_size": "history_window_size",
        "transition_weight": "transition_weight",
        "strategy": "encoder_strategy",
        "representation": "representation",
    },
    "learner": {
        "name": "learner",
        "epochs": "epochs",
        "alpha": "alpha",
        "margin": "margin",
        "unbiased": "unbiased",
        "smoothing": "smoothing",
        "iterations": "iterations",
        "error_boost_factor": "error_boost_factor",
        "seed": "seed",
    },
    "decoder": {
        "beam_size": "beam_size",
        "max_emission_candidates": "max_emission_candidates",
        "workers": "workers",
    },
}


def config_from_dict(y: Dict[str, Any]) -> Config:
    """Flattens a (possibly sectioned) settings mapping into a validated `Config`."""
    flat: Dict[str, Any] = {}
    for key, value in y.items():
        if key in _SECTION_KEYS and isinstance(value, dict):
            for sub_key, sub_value in value.items():
                target = _SECTION_KEYS[key].get(sub_key)
                if target:
                    flat[target] = sub_value
        elif key == "learner" and isinstance(value, str):
            flat["learner"] = value
        elif key in Config.__dataclass_fields__:
            flat[key] = value

    defaults = Config()
    seed = flat.get("seed", defaults.seed)
    cfg = Config(
        history_window_size=int(flat.get("history_window_size", defaults.history_window_size)),
        transition_weight=float(flat.get("transition_weight", defaults.transition_weight)),
        beam_size=int(flat.get("beam_size", defaults.beam_size)),
        max_emission_candidates=int(flat.get("max_emission_candidates", defaults.max_emission_candidates)),
        encoder_strategy=str(flat.get("encoder_strategy", defaults.encoder_strategy)),
        representation=str(flat.get("representation", defaults.representation)),
        learner=str(flat.get("learner", defaults.learner)),
        epochs=int(flat.get("epochs", defaults.epochs)),
        alpha=float(flat.get("alpha", defaults.alpha)),
        margin=float(flat.get("margin", defaults.margin)),
        unbiased=bool(flat.get("unbiased", defaults.unbiased)),
        smoothing=float(flat.get("smoothing", defaults.smoothing)),
        iterations=int(flat.get("iterations", defaults.iterations)),
        error_boost_factor=float(flat.get("error_boost_factor", defaults.error_boost_factor)),
        seed=int(seed) if seed is not None else None,
        workers=int(flat.get("workers", defaults.workers)),
        paths=dict(flat.get("paths", {}) or {}),
    )
    return cfg.validate()


def load_config(path: str = "config.yaml") -> Config:
    """
    Loads and validates a configuration file into a single Config object.

    Args:
        path: The path to the main `config.yaml` file.

    Returns:
        A fully populated and validated `Config` object.

    Raises:
        FileNotFoundError: If the specified `config.yaml` file cannot be found.
        ValueError: If there is an error parsing the YAML file, or if a
                    setting is invalid (`ConfigurationError`).
        TypeError: If the root of the YAML file is not a dictionary.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            y = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found at: {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file at {path}: {e}")

    if y is None:
        y = {}
    if not isinstance(y, dict):
        raise TypeError(f"Configuration file {path} must be a dictionary.")

    return config_from_dict(y)
