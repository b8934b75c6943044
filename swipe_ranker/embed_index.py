from __future__ import annotations

"""
Vocabulary table and nearest-cluster search.

The vocabulary maps a cluster index (one row of the FAISS index) to the
literal words sharing that embedding bucket; the first word is the
canonical spelling used for keyboard-path lookup. It is stored as a
MessagePack map ``{int: [str, ...]}``.

The FAISS index is read once and searched with one query vector per
gesture. Hits are returned in the order FAISS produced them, with empty
slots (label ``-1``) dropped.
"""

from pathlib import Path
from typing import Dict, List, Protocol, Sequence

import msgpack
import numpy as np
from loguru import logger

from .pipeline_types import RetrievalHit

try:
    import faiss  # type: ignore[import-not-found]
except Exception:
    faiss = None  # type: ignore


class VectorIndex(Protocol):
    def search(self, embedding: np.ndarray, k: int) -> List[RetrievalHit]:
        ...


# -------------------------------------------------------------------
# Vocabulary
# -------------------------------------------------------------------

def load_vocab(vocab_path: Path) -> Dict[int, List[str]]:
    """
    Load the cluster -> words map from a MessagePack file.

    Entries with an empty word list are dropped.
    """
    if not vocab_path.exists():
        raise FileNotFoundError(f"Vocabulary not found at {vocab_path}")

    logger.info("Loading vocabulary from {}", vocab_path)
    with vocab_path.open("rb") as f:
        raw = msgpack.unpackb(f.read(), raw=False, strict_map_key=False)

    if not isinstance(raw, dict):
        raise ValueError(f"Vocabulary must be a map of cluster -> words, got {type(raw).__name__}")

    vocab: Dict[int, List[str]] = {}
    for key, words in raw.items():
        if not words:
            continue
        vocab[int(key)] = [str(w) for w in words]

    logger.info("Vocabulary loaded with {} clusters", len(vocab))
    return vocab


def save_vocab(vocab: Dict[int, Sequence[str]], vocab_path: Path) -> Path:
    vocab_path.parent.mkdir(parents=True, exist_ok=True)
    with vocab_path.open("wb") as f:
        f.write(msgpack.packb({int(k): list(v) for k, v in vocab.items()}, use_bin_type=True))
    logger.info("Vocabulary with {} clusters written to {}", len(vocab), vocab_path)
    return vocab_path


# -------------------------------------------------------------------
# FAISS
# -------------------------------------------------------------------

def hits_from_search(distances: np.ndarray, labels: np.ndarray) -> List[RetrievalHit]:
    """Turn one row of a FAISS ``search`` result into ordered hits."""
    hits: List[RetrievalHit] = []
    for dist, label in zip(np.asarray(distances).reshape(-1), np.asarray(labels).reshape(-1)):
        if int(label) == -1:
            continue
        hits.append(RetrievalHit(cluster_index=int(label), distance=float(dist)))
    return hits


class FaissVocabularyIndex:
    def __init__(self, index):
        self._index = index

    @classmethod
    def load(cls, index_path: Path) -> "FaissVocabularyIndex":
        if faiss is None:
            raise RuntimeError("faiss is not available; cannot load the vocabulary index")
        if not Path(index_path).exists():
            raise FileNotFoundError(f"FAISS index not found at {index_path}")

        logger.info("Loading FAISS index from {}", index_path)
        index = faiss.read_index(str(index_path))  # type: ignore[attr-defined]
        logger.info("Index loaded with {} vectors (dim={})", index.ntotal, index.d)
        return cls(index)

    @property
    def dim(self) -> int:
        return int(self._index.d)

    @property
    def size(self) -> int:
        return int(self._index.ntotal)

    def search(self, embedding: np.ndarray, k: int) -> List[RetrievalHit]:
        query = np.ascontiguousarray(np.asarray(embedding, dtype="float32").reshape(1, -1))
        if query.shape[1] != self.dim:
            raise ValueError(f"Embedding dim {query.shape[1]} != index dim {self.dim}")
        k = min(int(k), self.size)
        if k <= 0:
            return []
        distances, labels = self._index.search(query, k)
        return hits_from_search(distances[0], labels[0])
