"""
Unit tests for training components: WaitTimeDataset and Trainer.
"""

import argparse
from pathlib import Path

import pytest
import torch

from data import Record
from model import WaitTimeRegressor
from tokenizer import SCHEME_BOW, EmptyCorpusError, encode
from train import (
    Trainer,
    TrainingError,
    WaitTimeDataset,
    add_training_arguments,
    create_datasets_and_model,
    split_records,
)


def make_args(*argv):
    parser = add_training_arguments(argparse.ArgumentParser())
    return parser.parse_args(list(argv))


class TestWaitTimeDataset:
    """Tests for the WaitTimeDataset class."""

    def test_len_matches_records(self, train_dataset, sample_records):
        assert len(train_dataset) == len(sample_records)

    def test_getitem_shapes(self, train_dataset, records_vocab):
        x, y = train_dataset[0]
        assert x.shape == (records_vocab.feature_size,)
        assert y.shape == (1,)

    def test_dtype_is_float(self, train_dataset):
        x, y = train_dataset[0]
        assert x.dtype == torch.float32
        assert y.dtype == torch.float32

    def test_features_match_encoder(self, train_dataset, sample_records, records_vocab):
        x, y = train_dataset[1]
        assert x.tolist() == [float(v) for v in encode(sample_records[1].text, records_vocab)]
        assert y.item() == 12.0

    def test_unlabelled_record_raises(self, records_vocab):
        with pytest.raises(ValueError):
            WaitTimeDataset([Record(text="hello")], records_vocab)

    def test_empty_dataset(self, records_vocab):
        dataset = WaitTimeDataset([], records_vocab)
        assert len(dataset) == 0


class TestSplitRecords:
    def test_no_split(self, sample_records):
        train, val = split_records(sample_records, 0.0)
        assert train == sample_records
        assert val == []

    def test_split_keeps_order(self, sample_records):
        train, val = split_records(sample_records, 0.5)
        assert train + val == sample_records
        assert len(val) == 3

    def test_invalid_ratio_raises(self, sample_records):
        with pytest.raises(ValueError):
            split_records(sample_records, 1.0)


class TestCreateDatasetsAndModel:
    def test_model_input_matches_vocabulary(self, sample_records):
        vocabulary, train_ds, val_ds, model = create_datasets_and_model(make_args(), sample_records)
        assert model.input_dim == vocabulary.feature_size == 7
        assert val_ds is None

    def test_bow_scheme(self, sample_records):
        vocabulary, _, _, model = create_datasets_and_model(make_args("--scheme", "bow"), sample_records)
        assert vocabulary.scheme == SCHEME_BOW
        assert model.input_dim == vocabulary.size

    def test_vocabulary_built_from_train_split_only(self, sample_records):
        vocabulary, train_ds, val_ds, _ = create_datasets_and_model(
            make_args("--val_split", "0.5"), sample_records
        )
        assert len(val_ds) == 3
        assert "refund" not in vocabulary

    def test_empty_records_raise(self):
        with pytest.raises(EmptyCorpusError):
            create_datasets_and_model(make_args(), [])


class TestTrainerInit:
    """Tests for Trainer initialization."""

    def test_trainer_creates_optimizer_and_loader(self, small_model, train_dataset):
        trainer = Trainer(small_model, train_dataset, batch_size=2, num_epochs=1, checkpoint_dir=None)
        assert trainer.optimizer is not None
        assert trainer.train_loader.batch_size == 2

    def test_trainer_creates_checkpoint_dir(self, small_model, train_dataset, tmp_path):
        checkpoint_dir = tmp_path / "checkpoints"
        Trainer(small_model, train_dataset, num_epochs=1, checkpoint_dir=str(checkpoint_dir))
        assert checkpoint_dir.exists()

    def test_empty_dataset_raises(self, small_model, records_vocab):
        with pytest.raises(TrainingError):
            Trainer(small_model, WaitTimeDataset([], records_vocab), checkpoint_dir=None)


class TestTrainerTraining:
    """Tests for actual training functionality."""

    @pytest.fixture
    def trainer(self, small_model, train_dataset, tmp_path):
        return Trainer(
            model=small_model,
            train_dataset=train_dataset,
            batch_size=2,
            num_epochs=3,
            device=torch.device("cpu"),
            checkpoint_dir=str(tmp_path),
        )

    def test_train_epoch_returns_loss(self, trainer):
        loss = trainer.train_epoch(epoch=0)
        assert isinstance(loss, float)
        assert loss > 0

    def test_train_epoch_updates_parameters(self, trainer):
        initial_params = [p.clone() for p in trainer.model.parameters()]
        trainer.train_epoch(epoch=0)
        assert any(
            not torch.equal(initial, current)
            for initial, current in zip(initial_params, trainer.model.parameters())
        )

    def test_train_returns_history(self, trainer):
        history = trainer.train()
        assert len(history) == 3

    def test_non_finite_loss_raises(self, small_model, records_vocab):
        dataset = WaitTimeDataset([Record(text="hello", label=1.0)], records_vocab)
        dataset.targets[0, 0] = float("nan")
        trainer = Trainer(small_model, dataset, device=torch.device("cpu"), checkpoint_dir=None)
        with pytest.raises(TrainingError):
            trainer.train_epoch(epoch=0)

    def test_predict_sample_returns_float(self, trainer):
        assert isinstance(trainer.predict_sample(), float)
        assert trainer.model.training

    @pytest.mark.slow
    def test_training_decreases_loss(self, records_vocab, train_dataset):
        model = WaitTimeRegressor(input_dim=records_vocab.feature_size, hidden_units=16)
        trainer = Trainer(
            model, train_dataset, learning_rate=1e-2, batch_size=6,
            num_epochs=100, device=torch.device("cpu"), checkpoint_dir=None, sample_every=0,
        )
        history = trainer.train()
        assert history[-1] < history[0]


class TestTrainerCheckpoints:
    """Tests for checkpoint saving."""

    @pytest.fixture
    def trainer_with_tmpdir(self, small_model, train_dataset, tmp_path):
        trainer = Trainer(small_model, train_dataset, num_epochs=1,
                          device=torch.device("cpu"), checkpoint_dir=str(tmp_path))
        return trainer, tmp_path

    def test_save_checkpoint_creates_file(self, trainer_with_tmpdir):
        trainer, tmpdir = trainer_with_tmpdir
        checkpoint_path = trainer.save_checkpoint(epoch=1, loss=1.0)
        assert Path(checkpoint_path).exists()

    def test_save_checkpoint_contains_required_keys(self, trainer_with_tmpdir):
        trainer, tmpdir = trainer_with_tmpdir
        checkpoint_path = trainer.save_checkpoint(epoch=1, loss=1.0)
        checkpoint = torch.load(checkpoint_path, weights_only=False)
        for key in ["epoch", "model_state_dict", "optimizer_state_dict", "loss", "model_config"]:
            assert key in checkpoint
        assert checkpoint["model_config"]["input_dim"] == trainer.model.input_dim

    def test_save_best_model_on_improvement(self, trainer_with_tmpdir):
        trainer, tmpdir = trainer_with_tmpdir
        trainer.save_checkpoint(epoch=1, loss=0.5)
        assert (tmpdir / "best_model.pt").exists()

    def test_no_best_model_without_improvement(self, trainer_with_tmpdir):
        trainer, tmpdir = trainer_with_tmpdir
        trainer.best_val_loss = 0.1
        trainer.save_checkpoint(epoch=1, loss=0.5)
        assert not (tmpdir / "best_model.pt").exists()

    def test_no_checkpoint_dir_saves_nothing(self, small_model, train_dataset):
        trainer = Trainer(small_model, train_dataset, checkpoint_dir=None)
        assert trainer.save_checkpoint(epoch=1, loss=1.0) is None


class TestTrainerValidation:
    """Tests for validation functionality."""

    def test_validate_returns_loss(self, small_model, sample_records, records_vocab):
        train_ds = WaitTimeDataset(sample_records[:4], records_vocab)
        val_ds = WaitTimeDataset(sample_records[4:], records_vocab)
        trainer = Trainer(small_model, train_ds, val_dataset=val_ds,
                          device=torch.device("cpu"), checkpoint_dir=None)
        val_loss = trainer.validate()
        assert isinstance(val_loss, float)
        assert val_loss >= 0

    def test_validate_without_val_dataset_returns_none(self, small_model, train_dataset):
        trainer = Trainer(small_model, train_dataset, checkpoint_dir=None)
        assert trainer.validate() is None
