from __future__ import annotations

"""
Batch-scoped ranking features.

Every candidate of one gesture gets a 39-value record that mixes three
similarity signals (language model, embedding distance, DTW distance) with
statistics of the *whole* batch: min-max and z-score normalizations,
gap to the best candidate, percentiles and rank agreement. Because of that
a record cannot exist on its own. :class:`FeatureBatchBuilder` ingests all
candidates first (pass 1 collects min/max/mean/std per signal) and only
then emits immutable records (pass 2).

The flat row fed to the ranking model follows :data:`FEATURE_SCHEMA`, a
named and versioned column list. Never rely on dataclass field order.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from .config import FEATURE_EPS
from .pipeline_types import CandidateWord


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

FEATURE_COLUMNS: Tuple[str, ...] = (
    # raw DTW and path metrics
    "dtw_raw",
    "dtw_normalized_by_max",
    "dtw_normalized_by_min",
    "dtw_normalized_by_sum",
    "len_swipe",
    "len_word",
    "path_length_ratio",
    "word_length",
    # core signals
    "lm_score",
    "embedding_distance",
    "embedding_rank",
    "dtw_distance",
    "dtw_rank",
    # min-max
    "lm_minmax",
    "embedding_minmax",
    "dtw_minmax",
    # z-score
    "lm_zscore",
    "embedding_zscore",
    "dtw_zscore",
    # gap to best (always >= 0)
    "lm_gap_to_best",
    "embedding_gap_to_best",
    "dtw_gap_to_best",
    # share of the batch strictly worse
    "lm_percentile",
    "embedding_percentile",
    "dtw_percentile",
    # rank agreement
    "rank_agreement",
    "min_rank",
    "is_top_embedding",
    "is_top_dtw",
    "is_top_in_both",
    # log / inverse
    "log_embedding_distance",
    "log_dtw_distance",
    "inv_embedding_distance",
    "inv_dtw_distance",
    # rank reciprocals
    "embedding_rank_reciprocal",
    "dtw_rank_reciprocal",
    # interactions
    "lm_embedding_interaction",
    "lm_dtw_interaction",
    "embedding_dtw_interaction",
)


@dataclass(frozen=True)
class FeatureSchema:
    """Ordered column contract shared with the trained ranking model."""

    version: str
    columns: Tuple[str, ...]

    @property
    def width(self) -> int:
        return len(self.columns)

    def index(self, name: str) -> int:
        return self.columns.index(name)


FEATURE_SCHEMA = FeatureSchema(version="swipe-ranker-features/1", columns=FEATURE_COLUMNS)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FeatureRecord:
    word: str

    dtw_raw: float
    dtw_normalized_by_max: float
    dtw_normalized_by_min: float
    dtw_normalized_by_sum: float
    len_swipe: int
    len_word: int
    path_length_ratio: float
    word_length: int

    lm_score: float
    embedding_distance: float
    embedding_rank: int
    dtw_distance: float
    dtw_rank: int

    lm_minmax: float
    embedding_minmax: float
    dtw_minmax: float

    lm_zscore: float
    embedding_zscore: float
    dtw_zscore: float

    lm_gap_to_best: float
    embedding_gap_to_best: float
    dtw_gap_to_best: float

    lm_percentile: float
    embedding_percentile: float
    dtw_percentile: float

    rank_agreement: int
    min_rank: int
    is_top_embedding: float
    is_top_dtw: float
    is_top_in_both: float

    log_embedding_distance: float
    log_dtw_distance: float
    inv_embedding_distance: float
    inv_dtw_distance: float

    embedding_rank_reciprocal: float
    dtw_rank_reciprocal: float

    lm_embedding_interaction: float
    lm_dtw_interaction: float
    embedding_dtw_interaction: float

    def to_row(self, schema: FeatureSchema = FEATURE_SCHEMA) -> List[float]:
        return [float(getattr(self, name)) for name in schema.columns]


@dataclass(frozen=True)
class SignalStats:
    minimum: float
    maximum: float
    mean: float
    std: float

    @classmethod
    def from_values(cls, values: np.ndarray) -> "SignalStats":
        # population std (ddof=0)
        return cls(
            minimum=float(values.min()),
            maximum=float(values.max()),
            mean=float(values.mean()),
            std=float(values.std()),
        )


@dataclass(frozen=True)
class BatchStats:
    lm: SignalStats
    embedding: SignalStats
    dtw: SignalStats
    size: int


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class FeatureBatchBuilder:
    """
    Two-pass feature synthesis for one prediction batch.

    >>> builder = FeatureBatchBuilder()
    >>> for cand in candidates:
    ...     builder.add(cand)
    >>> records = builder.build()

    ``add`` expects candidates whose DTW fields, ``dtw_rank`` and
    ``lm_score`` are already filled. A builder is single-use.
    """

    def __init__(self, eps: float = FEATURE_EPS):
        self.eps = eps
        self._candidates: List[CandidateWord] = []
        self._built = False
        self.stats: Optional[BatchStats] = None

    def __len__(self) -> int:
        return len(self._candidates)

    def add(self, candidate: CandidateWord) -> "FeatureBatchBuilder":
        if self._built:
            raise RuntimeError("FeatureBatchBuilder already built; start a new batch")
        if candidate.dtw_rank < 1 or candidate.embedding_rank < 1:
            raise ValueError(f"Candidate {candidate.word!r} has no rank assigned")
        self._candidates.append(candidate)
        return self

    def extend(self, candidates: Sequence[CandidateWord]) -> "FeatureBatchBuilder":
        for cand in candidates:
            self.add(cand)
        return self

    def _collect_stats(self, lm: np.ndarray, emb: np.ndarray, dtw: np.ndarray) -> BatchStats:
        return BatchStats(
            lm=SignalStats.from_values(lm),
            embedding=SignalStats.from_values(emb),
            dtw=SignalStats.from_values(dtw),
            size=len(lm),
        )

    def build(self) -> Tuple[FeatureRecord, ...]:
        if self._built:
            raise RuntimeError("FeatureBatchBuilder.build() may only be called once")
        if not self._candidates:
            raise ValueError("Cannot build features for an empty batch")
        self._built = True

        cands = self._candidates
        eps = self.eps
        k = len(cands)

        lm = np.array([c.lm_score for c in cands], dtype="float64")
        emb = np.array([c.embedding_distance for c in cands], dtype="float64")
        dtw = np.array([c.dtw_distance for c in cands], dtype="float64")

        # pass 1
        st = self._collect_stats(lm, emb, dtw)
        self.stats = st

        # pass 2: vectorised over the batch, then split per candidate
        lm_minmax = (lm - st.lm.minimum) / (st.lm.maximum - st.lm.minimum + eps)
        emb_minmax = (emb - st.embedding.minimum) / (st.embedding.maximum - st.embedding.minimum + eps)
        dtw_minmax = (dtw - st.dtw.minimum) / (st.dtw.maximum - st.dtw.minimum + eps)

        lm_z = (lm - st.lm.mean) / (st.lm.std + eps)
        emb_z = (emb - st.embedding.mean) / (st.embedding.std + eps)
        dtw_z = (dtw - st.dtw.mean) / (st.dtw.std + eps)

        lm_gap = st.lm.maximum - lm
        emb_gap = emb - st.embedding.minimum
        dtw_gap = dtw - st.dtw.minimum

        # row i counts columns j that are strictly worse than i
        lm_pct = (lm[None, :] < lm[:, None]).sum(axis=1) / k
        emb_pct = (emb[None, :] > emb[:, None]).sum(axis=1) / k
        dtw_pct = (dtw[None, :] > dtw[:, None]).sum(axis=1) / k

        # distances are non-negative by contract; clamp so the log stays finite
        log_emb = np.log(np.maximum(emb, 0.0) + eps)
        log_dtw = np.log(np.maximum(dtw, 0.0) + eps)
        inv_emb = 1.0 / (np.maximum(emb, 0.0) + eps)
        inv_dtw = 1.0 / (np.maximum(dtw, 0.0) + eps)

        records: List[FeatureRecord] = []
        for i, c in enumerate(cands):
            top_emb = c.embedding_rank == 1
            top_dtw = c.dtw_rank == 1
            records.append(
                FeatureRecord(
                    word=c.word,
                    dtw_raw=c.dtw_raw,
                    dtw_normalized_by_max=c.dtw_by_max,
                    dtw_normalized_by_min=c.dtw_by_min,
                    dtw_normalized_by_sum=c.dtw_by_sum,
                    len_swipe=c.len_swipe,
                    len_word=c.len_word,
                    path_length_ratio=(c.len_swipe / c.len_word) if c.len_word > 0 else 0.0,
                    word_length=len(c.word),
                    lm_score=float(lm[i]),
                    embedding_distance=float(emb[i]),
                    embedding_rank=c.embedding_rank,
                    dtw_distance=float(dtw[i]),
                    dtw_rank=c.dtw_rank,
                    lm_minmax=float(lm_minmax[i]),
                    embedding_minmax=float(emb_minmax[i]),
                    dtw_minmax=float(dtw_minmax[i]),
                    lm_zscore=float(lm_z[i]),
                    embedding_zscore=float(emb_z[i]),
                    dtw_zscore=float(dtw_z[i]),
                    lm_gap_to_best=float(lm_gap[i]),
                    embedding_gap_to_best=float(emb_gap[i]),
                    dtw_gap_to_best=float(dtw_gap[i]),
                    lm_percentile=float(lm_pct[i]),
                    embedding_percentile=float(emb_pct[i]),
                    dtw_percentile=float(dtw_pct[i]),
                    rank_agreement=abs(c.embedding_rank - c.dtw_rank),
                    min_rank=min(c.embedding_rank, c.dtw_rank),
                    is_top_embedding=1.0 if top_emb else 0.0,
                    is_top_dtw=1.0 if top_dtw else 0.0,
                    is_top_in_both=1.0 if (top_emb and top_dtw) else 0.0,
                    log_embedding_distance=float(log_emb[i]),
                    log_dtw_distance=float(log_dtw[i]),
                    inv_embedding_distance=float(inv_emb[i]),
                    inv_dtw_distance=float(inv_dtw[i]),
                    embedding_rank_reciprocal=1.0 / c.embedding_rank,
                    dtw_rank_reciprocal=1.0 / c.dtw_rank,
                    lm_embedding_interaction=float(lm[i] * emb[i]),
                    lm_dtw_interaction=float(lm[i] * dtw[i]),
                    embedding_dtw_interaction=float(emb[i] * dtw[i]),
                )
            )

        logger.debug("Built {} feature records (schema {})", len(records), FEATURE_SCHEMA.version)
        return tuple(records)


def compute_features(candidates: Sequence[CandidateWord], eps: float = FEATURE_EPS) -> Tuple[FeatureRecord, ...]:
    """Convenience wrapper: one builder, one batch."""
    return FeatureBatchBuilder(eps=eps).extend(candidates).build()


# ---------------------------------------------------------------------------
# Tabular views
# ---------------------------------------------------------------------------

def features_to_matrix(
    records: Sequence[FeatureRecord],
    schema: FeatureSchema = FEATURE_SCHEMA,
) -> np.ndarray:
    """K x width float64 matrix in schema order."""
    if not records:
        return np.zeros((0, schema.width), dtype="float64")
    return np.asarray([r.to_row(schema) for r in records], dtype="float64")


def features_to_frame(
    records: Sequence[FeatureRecord],
    schema: FeatureSchema = FEATURE_SCHEMA,
) -> pd.DataFrame:
    """One row per candidate, ``word`` as index, schema columns in order."""
    df = pd.DataFrame(features_to_matrix(records, schema), columns=list(schema.columns))
    df.index = pd.Index([r.word for r in records], name="word")
    return df


def describe_batch(stats: BatchStats) -> Dict[str, Dict[str, float]]:
    return {
        name: {
            "min": s.minimum,
            "max": s.maximum,
            "mean": s.mean,
            "std": s.std,
        }
        for name, s in (("lm", stats.lm), ("embedding", stats.embedding), ("dtw", stats.dtw))
    }
