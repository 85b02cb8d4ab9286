#!/usr/bin/env python3
"""
Training script for the wait-time regressor.
Encodes chat messages with a word vocabulary and fits a small MLP with MSE loss.
"""

import argparse
import math
import random
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim
from torch.utils.data import Dataset, DataLoader
from tqdm import tqdm

from data import (
    LABEL_POLICIES,
    LABEL_POLICY_DROP,
    DataFetchError,
    InvalidLabelError,
    InvalidRecordError,
    Record,
    load_records,
    training_records,
)
from model import WaitTimeRegressor, get_device
from tokenizer import (
    DEFAULT_DELIMITERS,
    SCHEME_INDEX,
    EmptyCorpusError,
    SCHEMES,
    Vocabulary,
    build_vocabulary,
    encode,
    encode_batch,
)


class TrainingError(RuntimeError):
    """Raised when training diverges or cannot proceed."""


# Failures that abort a run with a single diagnostic
PIPELINE_ERRORS = (DataFetchError, InvalidRecordError, InvalidLabelError, EmptyCorpusError, TrainingError)


class WaitTimeDataset(Dataset):
    """Encoded messages paired with their wait times."""

    def __init__(self, records: Sequence[Record], vocabulary: Vocabulary):
        self.records = list(records)
        self.vocabulary = vocabulary

        for i, record in enumerate(self.records):
            if record.label is None:
                raise ValueError(f"record {i} has no wait time and cannot be used for training")

        features = encode_batch((r.text for r in self.records), vocabulary)
        self.features = torch.tensor(
            np.asarray(features, dtype=np.float32).reshape(len(self.records), vocabulary.feature_size)
        )
        self.targets = torch.tensor(
            [[r.label] for r in self.records], dtype=torch.float32
        ).reshape(len(self.records), 1)

        print(f"Dataset size: {len(self):,} records, {vocabulary.feature_size} features each")

    def __len__(self):
        return len(self.records)

    def __getitem__(self, idx):
        return self.features[idx], self.targets[idx]


class Trainer:
    """Trainer for the wait-time regressor (MSE loss, Adam)."""

    def __init__(
        self,
        model: WaitTimeRegressor,
        train_dataset: WaitTimeDataset,
        val_dataset: WaitTimeDataset = None,
        learning_rate: float = 1e-3,
        batch_size: int = 2,
        num_epochs: int = 50,
        device: torch.device = None,
        checkpoint_dir: Optional[str] = "checkpoints",
        sample_every: int = 10
    ):
        if len(train_dataset) == 0:
            raise TrainingError("No training data: the training dataset is empty")

        self.model = model
        self.train_dataset = train_dataset
        self.val_dataset = val_dataset
        self.device = device or get_device()
        self.checkpoint_dir = Path(checkpoint_dir) if checkpoint_dir else None
        if self.checkpoint_dir:
            self.checkpoint_dir.mkdir(parents=True, exist_ok=True)

        self.model = self.model.to(self.device)

        self.train_loader = DataLoader(
            train_dataset,
            batch_size=batch_size,
            shuffle=True,
        )

        if val_dataset:
            self.val_loader = DataLoader(
                val_dataset,
                batch_size=batch_size,
                shuffle=False,
            )

        self.optimizer = optim.Adam(model.parameters(), lr=learning_rate)
        self.criterion = nn.MSELoss()

        self.num_epochs = num_epochs
        self.sample_every = sample_every
        self.best_val_loss = float('inf')

    def train_epoch(self, epoch: int) -> float:
        """Train for one epoch and return the average batch loss."""
        self.model.train()
        total_loss = 0.0
        avg_loss = 0.0
        progress_bar = tqdm(self.train_loader, desc=f"Epoch {epoch+1}/{self.num_epochs}", leave=False)

        for batch_idx, (x, y) in enumerate(progress_bar):
            x = x.to(self.device)
            y = y.to(self.device)

            predictions = self.model(x)
            loss = self.criterion(predictions, y)

            if not torch.isfinite(loss):
                raise TrainingError(
                    f"Loss became {loss.item()} at epoch {epoch+1}, batch {batch_idx}; "
                    "check the wait times in the training data"
                )

            self.optimizer.zero_grad()
            loss.backward()
            torch.nn.utils.clip_grad_norm_(self.model.parameters(), 1.0)
            self.optimizer.step()

            total_loss += loss.item()
            avg_loss = total_loss / (batch_idx + 1)

            progress_bar.set_postfix({
                'loss': f'{loss.item():.4f}',
                'avg_loss': f'{avg_loss:.4f}',
            })

        return avg_loss

    @torch.no_grad()
    def validate(self) -> Optional[float]:
        """Average validation loss, or None without a validation set."""
        if not self.val_dataset:
            return None

        self.model.eval()
        total_loss = 0.0
        num_batches = 0

        for x, y in self.val_loader:
            x = x.to(self.device)
            y = y.to(self.device)
            total_loss += self.criterion(self.model(x), y).item()
            num_batches += 1

        return total_loss / num_batches

    def save_checkpoint(self, epoch: int, loss: float):
        """Save the latest checkpoint, and the best one when loss improved."""
        if not self.checkpoint_dir:
            return None

        checkpoint = {
            'epoch': epoch,
            'model_state_dict': self.model.state_dict(),
            'optimizer_state_dict': self.optimizer.state_dict(),
            'loss': loss,
            'model_config': self.model.config,
        }

        checkpoint_path = self.checkpoint_dir / 'last_model.pt'
        torch.save(checkpoint, checkpoint_path)

        if loss < self.best_val_loss:
            self.best_val_loss = loss
            torch.save(checkpoint, self.checkpoint_dir / 'best_model.pt')
            print(f"Saved best model with loss {loss:.4f}")

        return checkpoint_path

    def train(self) -> List[float]:
        """Main training loop. Returns the per-epoch training loss."""
        print(f"\nStarting training on {self.device}")
        print(f"Batch size: {self.train_loader.batch_size}")
        print(f"Number of batches: {len(self.train_loader)}")
        print(f"Total epochs: {self.num_epochs}\n")

        history = []
        for epoch in range(self.num_epochs):
            train_loss = self.train_epoch(epoch)
            history.append(train_loss)

            if self.val_dataset:
                val_loss = self.validate()
                print(f"Epoch {epoch+1}: loss = {train_loss:.4f}, val_loss = {val_loss:.4f}")
            else:
                val_loss = train_loss
                print(f"Epoch {epoch+1}: loss = {train_loss:.4f}")

            self.save_checkpoint(epoch + 1, val_loss)

            if self.sample_every and (epoch + 1) % self.sample_every == 0:
                self.predict_sample()

        print("\nTraining complete!")
        if self.checkpoint_dir:
            print(f"Best model saved in {self.checkpoint_dir / 'best_model.pt'}")
        return history

    @torch.no_grad()
    def predict_sample(self) -> float:
        """Print the prediction for the first training message to monitor progress."""
        record = self.train_dataset.records[0]
        x = torch.tensor(
            [encode(record.text, self.train_dataset.vocabulary)],
            dtype=torch.float32,
            device=self.device,
        )
        predicted = self.model.predict(x).item()
        self.model.train()
        print(f"  sample: {record.text[:40]!r} -> {predicted:.1f} min (actual {record.label:g})")
        return predicted


def seed_everything(seed: Optional[int]) -> None:
    if seed is None:
        return
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def split_records(records: Sequence[Record], val_split: float):
    """Split records into train and validation lists, keeping order."""
    if not 0.0 <= val_split < 1.0:
        raise ValueError(f"val_split must be in [0, 1), got {val_split}")
    split_idx = len(records) - int(math.floor(len(records) * val_split))
    return list(records[:split_idx]), list(records[split_idx:])


def create_datasets_and_model(args, records: Sequence[Record]):
    """Build the vocabulary, datasets and model from training records."""
    train_records, val_records = split_records(records, args.val_split)

    vocabulary = build_vocabulary(
        (r.text for r in train_records),
        scheme=args.scheme,
        delimiters=args.delimiters,
    )

    train_dataset = WaitTimeDataset(train_records, vocabulary)
    val_dataset = WaitTimeDataset(val_records, vocabulary) if val_records else None

    model = WaitTimeRegressor(
        input_dim=vocabulary.feature_size,
        hidden_units=args.hidden_units,
        n_layers=args.n_layers,
        dropout=args.dropout,
    )

    return vocabulary, train_dataset, val_dataset, model


def add_training_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Arguments shared by train.py and run.py."""
    parser.add_argument('--scheme', type=str, default=SCHEME_INDEX, choices=SCHEMES,
                        help='Message encoding: index padding or bag-of-words')
    parser.add_argument('--delimiters', type=str, default=DEFAULT_DELIMITERS,
                        help='Extra split characters for the bag-of-words tokenizer')
    parser.add_argument('--label_policy', type=str, default=LABEL_POLICY_DROP, choices=LABEL_POLICIES,
                        help='What to do with non-numeric wait times')
    parser.add_argument('--default_label', type=float, default=0.0,
                        help='Wait time substituted under --label_policy default')
    parser.add_argument('--unknown_label', type=float, default=None,
                        help='Sentinel wait time meaning "unknown"; excluded from training and averages')
    parser.add_argument('--epochs', type=int, default=50, help='Number of epochs')
    parser.add_argument('--batch_size', type=int, default=2, help='Batch size')
    parser.add_argument('--lr', type=float, default=1e-3, help='Learning rate')
    parser.add_argument('--hidden_units', type=int, default=10, help='Units per hidden layer')
    parser.add_argument('--n_layers', type=int, default=1, help='Number of hidden layers')
    parser.add_argument('--dropout', type=float, default=0.0, help='Dropout after each hidden layer')
    parser.add_argument('--val_split', type=float, default=0.0, help='Validation split ratio')
    parser.add_argument('--seed', type=int, default=None, help='Random seed for reproducible training')
    return parser


def main():
    parser = argparse.ArgumentParser(description="Train the wait-time regressor on chat messages")
    parser.add_argument('--data', type=str, default='./json/training_data.json',
                        help='Training data: JSON file path or URL')
    parser.add_argument('--checkpoint_dir', type=str, default='checkpoints')
    add_training_arguments(parser)

    args = parser.parse_args()
    seed_everything(args.seed)

    try:
        records = load_records(args.data, label_policy=args.label_policy, default_label=args.default_label)
        records = training_records(records, args.unknown_label)

        vocabulary, train_dataset, val_dataset, model = create_datasets_and_model(args, records)

        Path(args.checkpoint_dir).mkdir(parents=True, exist_ok=True)
        vocabulary.save(str(Path(args.checkpoint_dir) / 'vocab.json'))

        trainer = Trainer(
            model=model,
            train_dataset=train_dataset,
            val_dataset=val_dataset,
            learning_rate=args.lr,
            batch_size=args.batch_size,
            num_epochs=args.epochs,
            checkpoint_dir=args.checkpoint_dir,
        )
        trainer.train()
    except PIPELINE_ERRORS as e:
        print(f"Error: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
