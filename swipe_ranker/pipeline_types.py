"""Typed containers shared across pipeline modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

Point2D = Tuple[float, float]
GesturePath = Sequence[Point2D]


@dataclass(frozen=True)
class RetrievalHit:
    """One nearest-cluster hit as returned by the vector index."""

    cluster_index: int
    distance: float


@dataclass
class CandidateWord:
    """
    A deduplicated literal word tied to the retrieval hit it was first seen in.

    DTW and language-model fields are filled by the engine after merging;
    ``dtw_rank`` is only meaningful once :func:`merge.assign_dtw_ranks` ran
    over the whole batch.
    """

    word: str
    cluster_index: int
    canonical_word: str
    embedding_distance: float
    embedding_rank: int

    dtw_raw: float = 0.0
    dtw_by_max: float = 0.0
    dtw_by_min: float = 0.0
    dtw_by_sum: float = 0.0
    len_swipe: int = 0
    len_word: int = 0
    dtw_rank: int = 0

    lm_score: float = 0.0

    @property
    def dtw_distance(self) -> float:
        return self.dtw_by_max


@dataclass(frozen=True)
class RankedWord:
    word: str
    score: float
    embedding_rank: int
    dtw_rank: int


@dataclass
class PredictionResult:
    """Outcome of one prediction call; ``ranked[0].word == best_word``."""

    best_word: str = ""
    ranked: List[RankedWord] = field(default_factory=list)
    scorer: str = "none"

    @property
    def is_empty(self) -> bool:
        return not self.best_word
