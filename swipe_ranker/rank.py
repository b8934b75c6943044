# swipe_ranker/rank.py
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np
from loguru import logger

from . import config
from .features import FEATURE_SCHEMA, FeatureRecord, FeatureSchema, features_to_matrix
from .pipeline_types import RankedWord

try:
    import lightgbm  # type: ignore
except Exception as e:
    lightgbm = None
    _import_err = e

SCORER_MODEL = "model"
SCORER_FALLBACK = "fallback"


# ---------------------------------------------------------------------------
# Model handling
# ---------------------------------------------------------------------------

class RankingModel(Protocol):
    def predict(self, rows: np.ndarray) -> Sequence[float]:
        ...


class LightGBMRankingModel:
    """
    Owns a LightGBM booster loaded from a text model file.

    The booster's input width is checked against the feature schema at
    load time; a mismatch means the model was trained on another column
    layout and must not be used.
    """

    def __init__(self, booster, schema: FeatureSchema = FEATURE_SCHEMA):
        self._booster = booster
        self.schema = schema

    @classmethod
    def load(cls, model_path: Path, schema: FeatureSchema = FEATURE_SCHEMA) -> "LightGBMRankingModel":
        if lightgbm is None:
            raise RuntimeError(f"lightgbm is not available: {_import_err}")
        if not Path(model_path).exists():
            raise FileNotFoundError(f"Ranking model not found at {model_path}")

        logger.info("Loading LightGBM ranking model from {}", model_path)
        booster = lightgbm.Booster(model_file=str(model_path))
        width = int(booster.num_feature())
        if width != schema.width:
            raise ValueError(
                f"Ranking model expects {width} features but schema {schema.version} has {schema.width}"
            )
        logger.info("Loaded ranking model: {} features, {} trees", width, booster.num_trees())
        return cls(booster, schema)

    @property
    def is_loaded(self) -> bool:
        return self._booster is not None

    def predict(self, rows: np.ndarray) -> np.ndarray:
        if self._booster is None:
            raise RuntimeError("Ranking model has been closed")
        rows = np.asarray(rows, dtype="float64")
        if rows.ndim != 2 or rows.shape[1] != self.schema.width:
            raise ValueError(f"Expected a (K, {self.schema.width}) matrix, got {rows.shape}")
        return np.asarray(self._booster.predict(rows), dtype="float64")

    def close(self) -> None:
        self._booster = None

    def __enter__(self) -> "LightGBMRankingModel":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def load_ranking_model(model_path: Path = config.RANKER_MODEL_PATH) -> Optional[LightGBMRankingModel]:
    """
    Load the ranking model if possible. The model is optional: any failure
    is logged and ``None`` is returned so callers use the fallback scorer.
    """
    try:
        return LightGBMRankingModel.load(model_path)
    except FileNotFoundError:
        logger.info("Ranking model not found (optional): {}; using fallback scoring", model_path)
    except Exception as e:
        logger.warning("Failed to load ranking model '{}': {}; using fallback scoring", model_path, e)
    return None


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def fallback_scores(
    records: Sequence[FeatureRecord],
    dtw_weight: float = config.FALLBACK_DTW_WEIGHT,
) -> np.ndarray:
    """lm_score - dtw_weight * dtw_distance (max-normalized)."""
    if not records:
        return np.zeros((0,), dtype="float64")
    return np.array(
        [r.lm_score - dtw_weight * r.dtw_distance for r in records],
        dtype="float64",
    )


def score_with_model(model: Optional[RankingModel], records: Sequence[FeatureRecord]) -> np.ndarray:
    """One batched call; raises if the model is missing or misbehaves."""
    if model is None:
        raise RuntimeError("No ranking model loaded")
    matrix = features_to_matrix(records)
    scores = np.asarray(model.predict(matrix), dtype="float64").reshape(-1)
    if scores.shape[0] != len(records):
        raise ValueError(f"Ranking model returned {scores.shape[0]} scores for {len(records)} rows")
    return scores


def order_best_first(scores: Sequence[float]) -> List[int]:
    # stable: equal scores keep input order
    return sorted(range(len(scores)), key=lambda i: -float(scores[i]))


def rank_features(
    records: Sequence[FeatureRecord],
    model: Optional[RankingModel] = None,
) -> Tuple[List[RankedWord], str]:
    """
    Best-first ranking of a feature batch.

    Uses ``model`` when given; falls back to :func:`fallback_scores` when no
    model is loaded or the model call fails. Returns the ranking and the
    name of the scorer that produced it.
    """
    if not records:
        return [], SCORER_FALLBACK

    scorer = SCORER_FALLBACK
    scores: Optional[np.ndarray] = None
    if model is not None:
        try:
            scores = score_with_model(model, records)
            scorer = SCORER_MODEL
        except Exception as e:
            logger.warning("Ranking model predict failed; falling back to heuristic scoring: {}", e)
            scores = None

    if scores is None:
        scores = fallback_scores(records)

    ranked = [
        RankedWord(
            word=records[i].word,
            score=float(scores[i]),
            embedding_rank=records[i].embedding_rank,
            dtw_rank=records[i].dtw_rank,
        )
        for i in order_best_first(scores)
    ]
    return ranked, scorer
