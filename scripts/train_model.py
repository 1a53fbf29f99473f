import argparse
import json
import sys
from pathlib import Path
from typing import List

# Add project root to path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from seqtag.config import load_config
from seqtag.data_validation import validate_corpus
from seqtag.errors import SeqtagError
from seqtag.io_utils import load_corpus, save_model
from seqtag.learner import SequenceLearner
from seqtag.types import SequenceExample


def collect_corpus_paths(corpus: Path) -> List[Path]:
    """Returns the JSON corpus files under ``corpus`` (or ``corpus`` itself)."""
    if corpus.is_file():
        return [corpus]
    return sorted(p for p in corpus.glob("*.json") if not p.name.endswith(".paths.json"))


def load_training_sequences(paths: List[Path]) -> List[SequenceExample]:
    """
    Loads and concatenates the sequences of several corpus files.

    Unreadable files are reported and skipped so a single bad file does not
    abort a long training run.
    """
    sequences: List[SequenceExample] = []
    for path in paths:
        try:
            sequences.extend(load_corpus(str(path)))
        except (ValueError, TypeError, FileNotFoundError) as e:
            print(f"\nWarning: Skipping file {path} due to error: {e}")
    return sequences


def main():
    """
    Main entry point for the command-line model training script.

    This script orchestrates the training process:
    1.  Parsing command-line arguments for the corpus and output paths.
    2.  Loading the configuration (history window, learner, beam settings).
    3.  Loading and validating the gold-labeled sequences.
    4.  Training the base learner on the history-enriched items.
    5.  Saving the model (classifier and encoder together) as JSON.
    """
    parser = argparse.ArgumentParser(
        description="Train a sequence labeling model from gold-labeled sequences.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--corpus", type=str, required=True, help="Path to a corpus JSON file or a directory of them.")
    parser.add_argument("--model", type=str, required=True, help="Output path for the trained model JSON.")
    parser.add_argument("--config", default="config.yaml", help="Path to the configuration YAML file.")
    parser.add_argument("--report", type=str, help="Optional: write the corpus validation report to this path.")
    args = parser.parse_args()

    try:
        cfg = load_config(args.config)

        paths = collect_corpus_paths(Path(args.corpus))
        if not paths:
            raise FileNotFoundError(f"No corpus JSON files found at {args.corpus}")
        print(f"Found {len(paths)} corpus files.")

        sequences = load_training_sequences(paths)
        if not sequences:
            print("\n[ERROR] No valid training data could be loaded. Aborting.")
            sys.exit(1)

        report = validate_corpus(sequences, cfg.representation, encoder_strategy=cfg.encoder_strategy)
        if args.report:
            with open(args.report, "w", encoding="utf-8") as f:
                json.dump(report, f, indent=2)
        errors = [issue for issue in report["issues"] if issue["type"].endswith("_error")]
        if errors:
            print(f"\n[ERROR] Corpus validation found {len(errors)} problems, e.g.: {errors[0]['message']}")
            sys.exit(1)

        print(
            f"\n--- Training {cfg.learner} (strategy {cfg.encoder_strategy}, "
            f"window {cfg.history_window_size}) on {len(sequences)} sequences ---"
        )
        learner = SequenceLearner.from_config(cfg, show_progress=True)
        model = learner.train(sequences)

        Path(args.model).parent.mkdir(parents=True, exist_ok=True)
        save_model(args.model, model)
        print(f"Successfully saved model with labels {model.labels} to {args.model}")

    except (FileNotFoundError, ValueError, TypeError, KeyError, SeqtagError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
