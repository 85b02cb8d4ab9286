"""
Shared pytest fixtures for the wait-time regressor tests.
"""

import json
import sys
from pathlib import Path

import pytest
import torch

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from data import Record
from model import WaitTimeRegressor
from tokenizer import SCHEME_BOW, build_vocabulary
from train import WaitTimeDataset


# --- Sample Data Fixtures ---

@pytest.fixture
def sample_corpus():
    """The two-sentence corpus used in the encoding examples."""
    return ["hello world", "hello there"]


@pytest.fixture
def training_items():
    """Raw JSON items shaped like training_data.json."""
    return [
        {"id": 1, "message": "Hello, I need help with my order 📦", "waitTime": 5},
        {"id": 2, "message": "My payment failed twice!!", "waitTime": "12"},
        {"id": 3, "message": "How do I change my password?", "waitTime": 3.5},
        {"id": 4, "message": "Order never arrived, please help", "waitTime": 15},
        {"id": 5, "message": "Thanks 😊", "waitTime": 1},
        {"id": 6, "message": "Refund for a cancelled order", "waitTime": 10},
    ]


@pytest.fixture
def actual_items():
    """Raw JSON items shaped like actual_data.json."""
    return [
        {"id": "a1", "message": "I need help with a refund", "waitTime": 9},
        {"id": "a2", "message": "password reset please", "waitTime": 4},
        {"id": "a3", "message": "where is my order", "waitTime": 14},
    ]


@pytest.fixture
def training_file(tmp_path, training_items):
    path = tmp_path / "training_data.json"
    path.write_text(json.dumps(training_items, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def actual_file(tmp_path, actual_items):
    path = tmp_path / "actual_data.json"
    path.write_text(json.dumps(actual_items, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def sample_records(training_items):
    return [
        Record(text=item["message"], label=float(item["waitTime"]), record_id=str(item["id"]))
        for item in training_items
    ]


# --- Vocabulary Fixtures ---

@pytest.fixture
def vocab(sample_corpus):
    """Index-scheme vocabulary: hello=1, world=2, there=3, max_length=2."""
    return build_vocabulary(sample_corpus)


@pytest.fixture
def bow_vocab(sample_corpus):
    """Bag-of-words vocabulary over [hello, world, there]."""
    return build_vocabulary(sample_corpus, scheme=SCHEME_BOW)


@pytest.fixture
def records_vocab(sample_records):
    return build_vocabulary(r.text for r in sample_records)


# --- Model Fixtures ---

@pytest.fixture
def small_model(records_vocab):
    """Regressor sized for records_vocab."""
    return WaitTimeRegressor(input_dim=records_vocab.feature_size, hidden_units=8)


# --- Dataset Fixtures ---

@pytest.fixture
def train_dataset(sample_records, records_vocab):
    return WaitTimeDataset(sample_records, records_vocab)


# --- Pytest Configuration ---

def pytest_configure(config):
    """Add custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "gpu: marks tests that require GPU"
    )


@pytest.fixture(autouse=True)
def set_random_seed():
    """Set random seeds for reproducibility."""
    torch.manual_seed(42)
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(42)
