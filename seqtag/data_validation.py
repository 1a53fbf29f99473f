from __future__ import annotations
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from .history import EXPLICIT
from .types import SequenceExample, SparseVector


def iter_positions(corpus: Iterable[SequenceExample]) -> Iterator[Tuple[int, int, Any]]:
    """
    Yields every item of a corpus with its coordinates.

    Yields:
        A tuple ``(sequence_idx, position, observation)`` for each item, in
        corpus order.
    """
    for seq_idx, sequence in enumerate(corpus):
        for pos, obs in enumerate(sequence):
            yield seq_idx, pos, obs


def validate_corpus(
    corpus: Iterable[SequenceExample],
    representation: str,
    require_labels: bool = True,
    encoder_strategy: str = EXPLICIT,
) -> Dict[str, Any]:
    """
    Performs sanity checks on a corpus before training or decoding.

    This function looks for problems that would otherwise surface deep inside
    training or decoding, such as:
    -   Items without a gold label (only when ``require_labels`` is true).
    -   Items missing the representation the learner reads.
    -   Items whose representation is not a sparse vector, which only the
        explicit-feature strategy requires.
    -   Empty sequences, which are legal but usually point at a loader bug.

    Args:
        corpus: The sequences to check.
        representation: Name of the representation the learner reads.
        require_labels: Whether every item must carry a gold label.
        encoder_strategy: The history strategy the corpus will be used with.

    Returns:
        A dictionary summarizing the validation results, containing the total
        `issue_count` and a list of `issues`, where each issue is a
        dictionary detailing the problem.
    """
    issues: List[Dict[str, Any]] = []
    corpus = list(corpus)

    for seq_idx, sequence in enumerate(corpus):
        if len(sequence) == 0:
            issues.append({
                "type": "empty_sequence_warning",
                "sequence": seq_idx,
                "message": f"Sequence {seq_idx} has no items."
            })

    for seq_idx, pos, obs in iter_positions(corpus):
        if require_labels and obs.label is None:
            issues.append({
                "type": "missing_label_error",
                "sequence": seq_idx,
                "position": pos,
                "message": f"Item {pos} of sequence {seq_idx} has no gold label."
            })
        rep = obs.representations.get(representation)
        if rep is None:
            issues.append({
                "type": "missing_representation_error",
                "sequence": seq_idx,
                "position": pos,
                "message": f"Item {pos} of sequence {seq_idx} has no '{representation}' representation."
            })
        elif encoder_strategy == EXPLICIT and not isinstance(rep, SparseVector):
            issues.append({
                "type": "non_sparse_representation_error",
                "sequence": seq_idx,
                "position": pos,
                "message": f"Item {pos} of sequence {seq_idx} stores '{representation}' as {type(rep).__name__}."
            })

    return {"issue_count": len(issues), "issues": issues}
