"""Core logic for turning a labeled sequence corpus into base-learner input.

The sequence labeler never trains on sequences directly. Instead this module
flattens them:

1.  **Label Collection**: `collect_labels` gathers the label set of the corpus
    so the base learner knows every outcome before training starts.
2.  **History Enrichment**: `build_flat_corpus` runs the history encoder over
    each gold-labeled sequence (teacher forcing) and concatenates the
    enriched items into one flat list of independent training examples.
3.  **Weight Building**: `build_feature_table` and `build_weights` implement
    the statistics behind the log-odds learner: the conditional probability
    of each label given each feature, smoothed and converted to log-odds.
"""
from __future__ import annotations
import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd
from tqdm import tqdm

from .history import HistoryEncoder
from .types import Label, Observation, SequenceExample, SparseVector

logger = logging.getLogger(__name__)


def log_odds(p: float, eps: float = 1e-6) -> float:
    """
    Converts a probability to log-odds.

    Args:
        p: The probability (0.0 to 1.0).
        eps: A small epsilon value to prevent division by zero or log(0).

    Returns:
        The log-odds representation of the probability.
    """
    p = min(1 - eps, max(eps, p))
    return math.log(p / (1 - p))


def collect_labels(corpus: Iterable[SequenceExample]) -> List[Label]:
    """
    Returns the distinct gold labels of a corpus in order of first appearance.

    Every label of every item is considered, so multi-label items contribute
    all of their labels.
    """
    seen: Dict[Label, None] = {}
    for sequence in corpus:
        for obs in sequence:
            for label in obs.labels:
                seen.setdefault(label, None)
    return list(seen)


def build_flat_corpus(
    corpus: Sequence[SequenceExample],
    encoder: HistoryEncoder,
    show_progress: bool = False,
) -> List[Observation]:
    """
    Enriches every sequence with gold history and flattens the result.

    Sequence boundaries are not kept: the returned list holds the enriched
    items of the first sequence, then those of the second, and so on.

    Args:
        corpus: The gold-labeled sequences.
        encoder: The history encoder that will also be used at decode time.
        show_progress: Displays a `tqdm` progress bar when true.

    Returns:
        The flat list of enriched observations, in corpus order.

    Raises:
        ValueError: If a sequence lacks a gold label needed as history. The
                    message names the offending sequence.
    """
    flat: List[Observation] = []
    iterator = tqdm(corpus, desc="Enriching sequences", unit="seq", disable=not show_progress)
    for seq_idx, sequence in enumerate(iterator):
        try:
            enriched = encoder.enrich_sequence(sequence)
        except ValueError as e:
            raise ValueError(f"Sequence {seq_idx}: {e}") from e
        flat.extend(enriched)
    logger.debug("Built %d training items from %d sequences", len(flat), len(corpus))
    return flat


def build_feature_table(observations: Sequence[Observation], representation: str) -> pd.DataFrame:
    """
    Explodes sparse observations into a long feature table.

    Each row pairs one feature of one training item with that item's gold
    label. Items without a label are skipped.

    Returns:
        A DataFrame with the columns ``item``, ``feature``, ``value`` and
        ``outcome``.
    """
    rows: List[Dict[str, Any]] = []
    for idx, obs in enumerate(observations):
        if obs.label is None:
            continue
        vector = obs.representation(representation)
        if not isinstance(vector, SparseVector):
            raise TypeError(
                f"Training item {idx}: representation '{representation}' is not a SparseVector"
            )
        for feature, value in vector.items():
            rows.append({"item": idx, "feature": feature, "value": value, "outcome": obs.label})
    return pd.DataFrame(rows, columns=["item", "feature", "value", "outcome"])


def build_weights(
    df: pd.DataFrame,
    labels: Sequence[Label],
    alpha: float = 0.1,
    sample_weights: Optional[pd.Series] = None,
) -> Dict[str, Dict[Label, float]]:
    """
    Builds per-feature label weights from a long feature table.

    For each feature it calculates the conditional probability of each label
    given that the feature fires, with Laplace smoothing, and converts the
    probabilities to log-odds.

    Args:
        df: The table produced by `build_feature_table`.
        labels: Every label the model must score.
        alpha: A smoothing factor (Laplace smoothing) to prevent zero probabilities.
        sample_weights: An optional Series indexed by training item to give
                        specific items more influence, used for iterative
                        reweighting.

    Returns:
        A nested dictionary ``{feature: {label: weight}}``.

    Raises:
        ValueError: If the input DataFrame is empty.
    """
    if df.empty:
        raise ValueError("Input DataFrame is empty. Cannot build weights.")

    df = df.copy()
    if sample_weights is not None:
        df["sample_weight"] = df["item"].map(sample_weights).fillna(1.0)
    else:
        df["sample_weight"] = 1.0

    counts = df.groupby(["feature", "outcome"])["sample_weight"].sum().unstack(fill_value=0) + alpha
    for out in labels:
        if out not in counts.columns:
            counts[out] = alpha
    row_totals = counts.sum(axis=1)
    probs = counts.div(row_totals, axis=0)

    weights: Dict[str, Dict[Label, float]] = {}
    for feature, row in probs.iterrows():
        weights[str(feature)] = {out: log_odds(float(row.get(out, 0.0))) for out in labels}
    return weights
