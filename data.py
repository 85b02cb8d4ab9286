"""
Loading and validation of chat-message records.
Training and actual datasets are JSON arrays of {"message": ..., "waitTime": ...}.
"""

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional

import requests


LABEL_POLICY_DROP = "drop"
LABEL_POLICY_DEFAULT = "default"
LABEL_POLICY_STRICT = "strict"
LABEL_POLICIES = (LABEL_POLICY_DROP, LABEL_POLICY_DEFAULT, LABEL_POLICY_STRICT)


class DataFetchError(RuntimeError):
    """Raised when a dataset cannot be fetched or decoded."""


class InvalidRecordError(ValueError):
    """Raised when a record is not shaped like a chat message."""


class InvalidLabelError(ValueError):
    """Raised when a wait time is missing, non-numeric, non-finite or negative."""


@dataclass(frozen=True)
class Record:
    """A chat message and its wait time in minutes (None when unknown)."""

    text: str
    label: Optional[float] = None
    record_id: Optional[str] = None


def fetch_json(source: str, timeout: float = 10.0) -> Any:
    """
    Fetch and decode a JSON document from an HTTP(S) URL or a local path.

    Args:
        source: URL or file path
        timeout: Seconds to wait for an HTTP response

    Returns:
        The decoded JSON value

    Raises:
        DataFetchError: On any transport, file or decoding failure
    """
    print(f"Fetching data from {source}...")
    try:
        if source.startswith(("http://", "https://")):
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
            return response.json()
        return json.loads(Path(source).read_text(encoding="utf-8"))
    except requests.RequestException as e:
        raise DataFetchError(f"Could not fetch {source}: {e}") from e
    except OSError as e:
        raise DataFetchError(f"Could not read {source}: {e}") from e
    except ValueError as e:
        # json.JSONDecodeError and requests' JSON errors are both ValueErrors
        raise DataFetchError(f"Invalid JSON in {source}: {e}") from e


def parse_label(value: Any) -> float:
    """Parse a wait time as a non-negative finite float."""
    if value is None:
        raise InvalidLabelError("wait time is missing")
    if isinstance(value, bool):
        raise InvalidLabelError(f"wait time must be a number, got {value!r}")
    if isinstance(value, str):
        try:
            label = float(value.strip())
        except ValueError:
            raise InvalidLabelError(f"wait time is not numeric: {value!r}") from None
    elif isinstance(value, (int, float)):
        label = float(value)
    else:
        raise InvalidLabelError(f"wait time must be a number, got {type(value).__name__}")

    if not math.isfinite(label):
        raise InvalidLabelError(f"wait time is not finite: {value!r}")
    if label < 0:
        raise InvalidLabelError(f"wait time is negative: {value!r}")
    return label


def parse_record(item: Any, index: int, require_label: bool = True) -> Record:
    """
    Build a Record from one JSON item.

    Plain strings are accepted as message-only records when no label is required.

    Raises:
        InvalidRecordError: If the item has no string message
        InvalidLabelError: If the wait time is required but invalid
    """
    if isinstance(item, str):
        if require_label:
            raise InvalidRecordError(f"record {index}: message-only records have no wait time")
        return Record(text=item)

    if not isinstance(item, dict):
        raise InvalidRecordError(f"record {index}: expected an object, got {type(item).__name__}")

    text = item.get("message")
    if not isinstance(text, str):
        raise InvalidRecordError(f"record {index}: 'message' must be a string")

    record_id = item.get("id")
    record_id = str(record_id) if record_id is not None else None

    if not require_label and item.get("waitTime") is None:
        return Record(text=text, record_id=record_id)

    try:
        label = parse_label(item.get("waitTime"))
    except InvalidLabelError as e:
        raise InvalidLabelError(f"record {index}: {e}") from None
    return Record(text=text, label=label, record_id=record_id)


def parse_records(
    items: Any,
    label_policy: str = LABEL_POLICY_DROP,
    default_label: float = 0.0,
    require_label: bool = True,
) -> List[Record]:
    """
    Parse a JSON array into Records, applying one invalid-label policy to the whole run.

    Policies:
        drop: exclude records with invalid wait times
        default: substitute default_label
        strict: raise on the first invalid wait time
    """
    if label_policy not in LABEL_POLICIES:
        raise ValueError(f"Unknown label policy: {label_policy!r} (expected one of {LABEL_POLICIES})")
    if not isinstance(items, list):
        raise InvalidRecordError(f"expected a JSON array of records, got {type(items).__name__}")

    records = []
    dropped = 0
    for index, item in enumerate(items):
        try:
            records.append(parse_record(item, index, require_label=require_label))
        except InvalidLabelError as e:
            if label_policy == LABEL_POLICY_STRICT:
                raise
            if label_policy == LABEL_POLICY_DROP:
                print(f"Warning: dropping {e}")
                dropped += 1
                continue
            records.append(Record(
                text=item["message"],
                label=float(default_label),
                record_id=str(item["id"]) if item.get("id") is not None else None,
            ))

    if dropped:
        print(f"Dropped {dropped} of {len(items)} records with invalid wait times")
    return records


def load_records(
    source: str,
    label_policy: str = LABEL_POLICY_DROP,
    default_label: float = 0.0,
    require_label: bool = True,
) -> List[Record]:
    """Fetch a JSON dataset and parse it into Records."""
    records = parse_records(
        fetch_json(source),
        label_policy=label_policy,
        default_label=default_label,
        require_label=require_label,
    )
    print(f"Loaded {len(records)} records from {source}")
    return records


def is_unknown(record: Record, unknown_label: Optional[float] = None) -> bool:
    """True when the record carries no usable wait time."""
    if record.label is None:
        return True
    return unknown_label is not None and record.label == unknown_label


def training_records(records: Iterable[Record], unknown_label: Optional[float] = None) -> List[Record]:
    """Records fit for training: labelled and not carrying the unknown-wait sentinel."""
    records = list(records)
    kept = [r for r in records if not is_unknown(r, unknown_label)]
    if len(kept) < len(records):
        print(f"Excluded {len(records) - len(kept)} records with unknown wait time from training")
    return kept
