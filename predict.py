"""
Wait-time prediction with a trained regressor.
Supports single messages, whole datasets, and an interactive prompt.
"""

import argparse
from pathlib import Path
from typing import Iterable, List

import torch

from data import DataFetchError, InvalidRecordError, load_records
from model import WaitTimeRegressor, get_device
from tokenizer import Vocabulary, encode_batch


class WaitTimePredictor:
    """Predicts wait times for raw messages using a trained model and its vocabulary."""

    def __init__(self, checkpoint_path: str, vocab_path: str, device: torch.device = None):
        self.device = device or get_device()

        self.vocabulary = Vocabulary.load(vocab_path)
        print(f"Loaded vocabulary with {self.vocabulary.size} tokens ({self.vocabulary.scheme} scheme)")

        checkpoint = torch.load(checkpoint_path, map_location=self.device)
        config = checkpoint['model_config']

        self.model = WaitTimeRegressor(
            input_dim=config['input_dim'],
            hidden_units=config['hidden_units'],
            n_layers=config.get('n_layers', 1),
            dropout=0.0  # No dropout during inference
        )
        self.model.load_state_dict(checkpoint['model_state_dict'])
        self.model.to(self.device)
        self.model.eval()
        self._check_compatible()

        print(f"Loaded model from epoch {checkpoint['epoch']} with loss {checkpoint['loss']:.4f}")

    @classmethod
    def from_model(cls, model: WaitTimeRegressor, vocabulary: Vocabulary, device: torch.device = None):
        """Wrap an in-memory model, e.g. straight after training."""
        predictor = cls.__new__(cls)
        predictor.device = device or next(model.parameters()).device
        predictor.vocabulary = vocabulary
        predictor.model = model.to(predictor.device)
        predictor.model.eval()
        predictor._check_compatible()
        return predictor

    def _check_compatible(self):
        if self.vocabulary.feature_size != self.model.input_dim:
            raise ValueError(
                f"Vocabulary encodes {self.vocabulary.feature_size} features "
                f"but the model expects {self.model.input_dim}"
            )

    @torch.no_grad()
    def predict(self, texts: Iterable[str], round_result: bool = True) -> List[float]:
        """Predict one wait time (minutes) per message."""
        texts = list(texts)
        if not texts:
            return []

        x = torch.tensor(
            encode_batch(texts, self.vocabulary),
            dtype=torch.float32,
            device=self.device,
        )
        predictions = self.model.predict(x).cpu().tolist()

        if round_result:
            return [float(round(p)) for p in predictions]
        return [float(p) for p in predictions]

    def interactive_mode(self):
        """Run interactive prediction mode."""
        print("\n" + "="*60)
        print("Interactive Wait-Time Prediction")
        print("="*60)
        print("Enter a message and press Enter to predict its wait time.")
        print("Type 'quit' to exit, 'help' for options.")
        print("="*60 + "\n")

        settings = {'round': True}

        while True:
            message = input("\n> ").strip()

            if message.lower() == 'quit':
                print("Goodbye!")
                break

            elif message.lower() == 'help':
                print("\nCommands:")
                print("  quit - Exit the program")
                print("  help - Show this help message")
                print("  settings - Show current settings")
                print("  set round on|off - Round predictions to whole minutes")
                continue

            elif message.lower() == 'settings':
                print("\nCurrent settings:")
                for key, value in settings.items():
                    print(f"  {key}: {value}")
                continue

            elif message.lower().startswith('set '):
                parts = message.split()
                if len(parts) == 3 and parts[1] == 'round' and parts[2] in ('on', 'off'):
                    settings['round'] = parts[2] == 'on'
                    print(f"Set round to {parts[2]}")
                else:
                    print("Usage: set round on|off")
                continue

            elif message == '':
                continue

            predicted = self.predict([message], round_result=settings['round'])[0]
            print(f"Predicted wait time: {predicted:g} min")


def main():
    parser = argparse.ArgumentParser(description="Predict wait times with a trained regressor")
    parser.add_argument(
        '--checkpoint',
        type=str,
        default='checkpoints/best_model.pt',
        help='Path to model checkpoint'
    )
    parser.add_argument(
        '--vocab',
        type=str,
        default='checkpoints/vocab.json',
        help='Path to vocabulary'
    )
    parser.add_argument(
        '--message',
        type=str,
        default=None,
        help='Single message to predict'
    )
    parser.add_argument(
        '--data',
        type=str,
        default=None,
        help='JSON dataset (path or URL) to predict, printed beside actual wait times'
    )
    parser.add_argument(
        '--no_round',
        action='store_true',
        help='Report raw predictions instead of whole minutes'
    )
    parser.add_argument(
        '--interactive',
        action='store_true',
        help='Run in interactive mode'
    )

    args = parser.parse_args()

    if not Path(args.checkpoint).exists():
        print(f"Error: Checkpoint not found at {args.checkpoint}")
        print("Please train the model first using: python train.py")
        return

    if not Path(args.vocab).exists():
        print(f"Error: Vocabulary not found at {args.vocab}")
        print("Please train the model first using: python train.py")
        return

    predictor = WaitTimePredictor(args.checkpoint, args.vocab)
    round_result = not args.no_round

    if args.interactive:
        predictor.interactive_mode()
    elif args.message:
        predicted = predictor.predict([args.message], round_result=round_result)[0]
        print(f"Predicted wait time: {predicted:g} min")
    elif args.data:
        try:
            records = load_records(args.data, require_label=False)
        except (DataFetchError, InvalidRecordError) as e:
            print(f"Error: {e}")
            raise SystemExit(1)
        predictions = predictor.predict((r.text for r in records), round_result=round_result)
        print("="*60)
        for record, predicted in zip(records, predictions):
            actual = "?" if record.label is None else f"{record.label:g}"
            print(f"{actual:>6} | {predicted:>6g} | {record.text[:45]}")
        print("="*60)
    else:
        print("Please provide --message, --data, or use --interactive mode")


if __name__ == "__main__":
    main()
