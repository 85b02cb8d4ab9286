"""
Word-level tokenizer and vocabulary for the wait-time regressor.
Converts chat messages to fixed-length numeric vectors and back.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple


SCHEME_INDEX = "index"
SCHEME_BOW = "bow"
SCHEMES = (SCHEME_INDEX, SCHEME_BOW)

# Decorative symbols, general and CJK punctuation, enclosed CJK, and emoji planes; kana blocks are kept
EMOJI_PATTERN = re.compile("[\u00a9\u00ae\u2000-\u303f\u3200-\u3300\U0001F000-\U0001FFFF]")
PUNCTUATION_PATTERN = re.compile(r"[^\w\s]")

DEFAULT_DELIMITERS = "、。，．！？「」『』（）・,.!?()"


class EmptyCorpusError(ValueError):
    """Raised when a vocabulary would be built from no usable training text."""


def clean_text(text: str) -> str:
    """Strip emoji and punctuation, then lower-case."""
    text = EMOJI_PATTERN.sub("", text)
    text = PUNCTUATION_PATTERN.sub("", text)
    return text.lower()


def tokenize(text: str) -> List[str]:
    """Split cleaned text on whitespace."""
    return [word for word in clean_text(text).split() if word]


def _delimiter_pattern(delimiters: str) -> "re.Pattern":
    return re.compile("[\\s" + re.escape(delimiters) + "]+") if delimiters else re.compile(r"\s+")


def tokenize_delimited(text: str, delimiters: str = DEFAULT_DELIMITERS) -> List[str]:
    """
    Split text on whitespace and the given delimiter characters.

    Delimiters are applied before cleaning so that Japanese punctuation
    (which the emoji pattern would otherwise erase) still separates words.
    """
    pieces = _delimiter_pattern(delimiters).split(text.lower())
    cleaned = (clean_text(piece) for piece in pieces)
    return [word for word in cleaned if word]


@dataclass(frozen=True)
class Vocabulary:
    """Ordered, deduplicated training tokens plus the encoding settings they were built for."""

    tokens: Tuple[str, ...]
    scheme: str = SCHEME_INDEX
    max_length: int = 0
    delimiters: str = DEFAULT_DELIMITERS
    word_to_id: Dict[str, int] = field(init=False, repr=False, compare=False)
    column_of: Dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.scheme not in SCHEMES:
            raise ValueError(f"Unknown encoding scheme: {self.scheme!r} (expected one of {SCHEMES})")
        object.__setattr__(self, "tokens", tuple(self.tokens))
        # 0 is reserved for unknown/padding in the index scheme
        object.__setattr__(self, "word_to_id", {w: i + 1 for i, w in enumerate(self.tokens)})
        object.__setattr__(self, "column_of", {w: i for i, w in enumerate(self.tokens)})

    def __len__(self) -> int:
        return len(self.tokens)

    def __contains__(self, token) -> bool:
        return token in self.column_of

    @property
    def size(self) -> int:
        return len(self.tokens)

    @property
    def feature_size(self) -> int:
        """Length of every vector this vocabulary encodes to."""
        return self.max_length if self.scheme == SCHEME_INDEX else self.size

    def save(self, path: str) -> None:
        """Save vocabulary to a JSON file."""
        with open(path, 'w', encoding='utf-8') as f:
            json.dump({
                'tokens': list(self.tokens),
                'scheme': self.scheme,
                'max_length': self.max_length,
                'delimiters': self.delimiters,
            }, f, ensure_ascii=False, indent=2)

    @classmethod
    def load(cls, path: str) -> "Vocabulary":
        """Load a vocabulary saved with `save`."""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls(
            tokens=tuple(data['tokens']),
            scheme=data.get('scheme', SCHEME_INDEX),
            max_length=int(data.get('max_length', 0)),
            delimiters=data.get('delimiters', DEFAULT_DELIMITERS),
        )


def build_vocabulary(
    corpus: Iterable[str],
    scheme: str = SCHEME_INDEX,
    delimiters: str = DEFAULT_DELIMITERS,
) -> Vocabulary:
    """
    Build a vocabulary from the training corpus.

    Tokens are kept in order of first occurrence. For the index scheme,
    max_length is the longest tokenized training text.

    Raises:
        EmptyCorpusError: If the corpus is empty or yields no tokens
        ValueError: If the scheme is unknown
    """
    if scheme not in SCHEMES:
        raise ValueError(f"Unknown encoding scheme: {scheme!r} (expected one of {SCHEMES})")

    texts = list(corpus)
    if not texts:
        raise EmptyCorpusError("No training data: cannot build a vocabulary from an empty corpus")

    seen: Dict[str, None] = {}
    max_length = 0
    for text in texts:
        words = tokenize_delimited(text, delimiters) if scheme == SCHEME_BOW else tokenize(text)
        max_length = max(max_length, len(words))
        for word in words:
            seen.setdefault(word, None)

    if not seen:
        raise EmptyCorpusError(
            f"No training data: {len(texts)} training texts produced no tokens after cleaning"
        )

    vocab = Vocabulary(
        tokens=tuple(seen),
        scheme=scheme,
        max_length=max_length if scheme == SCHEME_INDEX else 0,
        delimiters=delimiters,
    )
    print(f"Vocabulary size: {vocab.size} ({scheme} scheme, feature size {vocab.feature_size})")
    print(f"Sample vocab: {list(vocab.tokens[:10])}...")
    return vocab


def encode_indexed(text: str, vocab: Vocabulary) -> List[int]:
    """Token ids, truncated or zero-padded to vocab.max_length."""
    ids = [vocab.word_to_id.get(word, 0) for word in tokenize(text)][:vocab.max_length]
    return ids + [0] * (vocab.max_length - len(ids))


def encode_bow(text: str, vocab: Vocabulary) -> List[int]:
    """Multi-hot presence vector over the vocabulary."""
    vector = [0] * vocab.size
    for word in tokenize_delimited(text, vocab.delimiters):
        column = vocab.column_of.get(word)
        if column is not None:
            vector[column] = 1
    return vector


def encode(text: str, vocab: Vocabulary) -> List[int]:
    """Encode text with the vocabulary's scheme."""
    if vocab.scheme == SCHEME_BOW:
        return encode_bow(text, vocab)
    return encode_indexed(text, vocab)


def encode_batch(texts: Iterable[str], vocab: Vocabulary) -> List[List[int]]:
    return [encode(text, vocab) for text in texts]


def decode_indexed(ids: Sequence[int], vocab: Vocabulary) -> List[str]:
    """Known tokens in position order; unknown and padding ids are skipped."""
    return [vocab.tokens[i - 1] for i in ids if 0 < i <= vocab.size]


def decode_bow(vector: Sequence[int], vocab: Vocabulary) -> List[str]:
    """Known tokens present in the vector, in vocabulary order."""
    return [vocab.tokens[i] for i, value in enumerate(vector) if value]


def decode(vector: Sequence[int], vocab: Vocabulary) -> List[str]:
    if vocab.scheme == SCHEME_BOW:
        return decode_bow(vector, vocab)
    return decode_indexed(vector, vocab)
