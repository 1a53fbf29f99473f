"""Command-line script for evaluating a trained model on a gold corpus.

The script decodes every sequence of a gold-labeled corpus and compares the
best path of each prediction with the gold labels, position by position. It
prints accuracy, micro/macro F1 and per-label precision, recall and F1, and
can write every disagreement to a CSV file for error analysis.
"""
import argparse
import csv
import json
import sys
from pathlib import Path
from typing import Dict, List, Sequence

# Add project root to path to allow for package imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from seqtag.beam_search import decode_corpus
from seqtag.config import load_config
from seqtag.errors import SeqtagError
from seqtag.evaluation import SequenceEvaluator
from seqtag.io_utils import load_corpus, load_model
from seqtag.path import SequencePrediction
from seqtag.types import SequenceExample


def collect_disagreements(
    sequences: Sequence[SequenceExample], predictions: Sequence[SequencePrediction]
) -> List[Dict[str, object]]:
    rows = []
    for seq_idx, (sequence, prediction) in enumerate(zip(sequences, predictions)):
        for pos, (obs, label) in enumerate(zip(sequence, prediction.best_path().labels)):
            if not obs.is_example_of(label):
                rows.append({
                    "sequence": seq_idx,
                    "position": pos,
                    "generated": label,
                    "reference": "|".join(obs.labels),
                })
    return rows


def main():
    parser = argparse.ArgumentParser(
        description="Evaluate a sequence model against a gold-labeled corpus.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--corpus", required=True, help="Path to the gold-labeled corpus JSON file.")
    parser.add_argument("--model", required=True, help="Path to the trained model JSON file.")
    parser.add_argument("--config", default="config.yaml", help="Path to the configuration YAML file.")
    parser.add_argument("--disagreements-out", help="Optional: Path to write a detailed disagreements CSV file.")
    args = parser.parse_args()

    try:
        print("Loading files...")
        cfg = load_config(args.config)
        model = load_model(args.model)
        sequences = load_corpus(args.corpus)

        predictions = decode_corpus(sequences, model, cfg, show_progress=True)

        evaluator = SequenceEvaluator(model.labels)
        evaluator.add_all(zip(sequences, predictions))
        print("\n--- Comparison Metrics (vs. Reference) ---")
        print(json.dumps(evaluator.report(), indent=2))

        disagreements = collect_disagreements(sequences, predictions)
        if args.disagreements_out and disagreements:
            Path(args.disagreements_out).parent.mkdir(parents=True, exist_ok=True)
            print(f"\nWriting {len(disagreements)} disagreements to {args.disagreements_out}...")
            with open(args.disagreements_out, "w", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=["sequence", "position", "generated", "reference"])
                writer.writeheader()
                writer.writerows(disagreements)

    except (FileNotFoundError, ValueError, TypeError, KeyError, SeqtagError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
