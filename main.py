import argparse
import sys
from pathlib import Path

# Add project root to path for robust execution
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from seqtag.beam_search import decode_corpus
from seqtag.config import load_config
from seqtag.errors import SeqtagError
from seqtag.io_utils import label_corpus, load_corpus, load_model, save_corpus, save_predictions


def main():
    """
    Main command-line interface for labeling sequences with a trained model.

    This script performs the following steps:
    1.  Loads the configuration file (`config.yaml`) for the beam settings.
    2.  Loads the trained sequence model (classifier and history encoder).
    3.  Loads the unlabeled sequences from the input JSON corpus.
    4.  Runs the beam search decoder over every sequence.
    5.  Writes the sequences labeled with their best path, and optionally
        every ranked path with its score.
    """
    parser = argparse.ArgumentParser(
        description="Label sequences with a trained sequence model.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "--input",
        required=True,
        help="Path to the input corpus JSON file."
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Path to write the labeled corpus JSON file."
    )
    parser.add_argument(
        "--model",
        help="Path to the trained model JSON file. Defaults to paths.model from the config."
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to the configuration YAML file."
    )
    parser.add_argument("--beam-size", type=int, help="Override the configured beam size.")
    parser.add_argument("--max-emission-candidates", type=int, help="Override the configured branching factor.")
    parser.add_argument(
        "--save-paths",
        action="store_true",
        help="Also write every ranked path next to the output as <output>.paths.json."
    )
    args = parser.parse_args()

    try:
        print(f"Loading configuration from {args.config}...")
        cfg = load_config(args.config)
        if args.beam_size is not None:
            cfg.beam_size = args.beam_size
        if args.max_emission_candidates is not None:
            cfg.max_emission_candidates = args.max_emission_candidates
        cfg.validate()

        model_path = args.model
        if not model_path:
            if not cfg.paths.get("model"):
                raise ValueError(
                    f"No model given: pass --model or set paths.model in {args.config}"
                )
            model_path = str(Path(args.config).parent / cfg.paths["model"])
        print(f"Loading model from {model_path}...")
        model = load_model(model_path)

        print(f"Loading sequences from {args.input}...")
        sequences = load_corpus(args.input)

        print(f"Decoding {len(sequences)} sequences (beam {cfg.beam_size}, candidates {cfg.max_emission_candidates})...")
        predictions = decode_corpus(sequences, model, cfg, show_progress=True)

        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        save_corpus(str(output_path), label_corpus(sequences, predictions))
        print(f"\nSuccessfully wrote labeled sequences to {args.output}")

        if args.save_paths:
            paths_output = output_path.with_suffix(".paths.json")
            save_predictions(str(paths_output), predictions)
            print(f"Successfully wrote ranked paths to {paths_output}")

    except (FileNotFoundError, ValueError, TypeError, KeyError, SeqtagError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
