from __future__ import annotations

"""
FastAPI surface for swipe prediction.

- POST /predict: gesture path + typed context -> best word and ranking
- GET /health: which collaborators are loaded
An empty path is not an error; it yields an empty prediction.
"""

from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from ._singletons import get_predictor
from .config import HealthResponse, PredictRequest, PredictResponse, RankedWordItem
from .engine import SwipePredictor


def run_prediction(req: PredictRequest, predictor: SwipePredictor) -> PredictResponse:
    result = predictor.predict_best_word(req.as_points(), req.context_words)
    items = [
        RankedWordItem(
            word=r.word,
            score=r.score,
            embedding_rank=r.embedding_rank,
            dtw_rank=r.dtw_rank,
        )
        for r in result.ranked[: req.top_k]
    ]
    return PredictResponse(best_word=result.best_word, ranked=items)


app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_predictor: Optional[SwipePredictor] = None


@app.on_event("startup")
def startup_event() -> None:
    global _predictor
    logger.info("Starting app warmup...")
    try:
        _predictor = get_predictor()
    except Exception as e:
        _predictor = None
        logger.warning("Swipe predictor failed to load: {}", e)
    logger.info("Warmup complete.")


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    if _predictor is None:
        return HealthResponse(status="degraded", components={})
    return HealthResponse(status="healthy", components=_predictor.status())


@app.post("/predict", response_model=PredictResponse)
def predict(req: PredictRequest) -> PredictResponse:
    if not req.path:
        return PredictResponse(best_word="", ranked=[])
    if _predictor is None:
        raise HTTPException(status_code=503, detail="Predictor not loaded")
    return run_prediction(req, _predictor)
