from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------
# Paths
# ---------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]

ASSETS_DIR = Path(os.getenv("SWIPE_ASSETS_DIR", str(PROJECT_ROOT / "assets")))

SWIPE_ENCODER_PATH = ASSETS_DIR / "swipe_encoder.onnx"
VOCAB_PATH = ASSETS_DIR / "vocab.msgpck"
FAISS_INDEX_PATH = ASSETS_DIR / "index.faiss"
KENLM_PATH = ASSETS_DIR / "kenlm_model.arpa"
RANKER_MODEL_PATH = ASSETS_DIR / "lightgbm_ranker.txt"

# optional JSON {char: [x, y]} table replacing the built-in layout
KEYBOARD_COORDS_PATH: Optional[Path] = (
    Path(os.environ["SWIPE_KEYBOARD_PATH"]) if os.getenv("SWIPE_KEYBOARD_PATH") else None
)


# ---------------------------
# Gesture encoder
# ---------------------------

MAX_LENGTH_SWIPE = 520
SWIPE_PAD_VALUE = -200.0

ENCODER_INPUT_NAMES = ("input", "positions", "mask")
ENCODER_OUTPUT_NAME = "output"


# ---------------------------
# Retrieval
# ---------------------------

DEFAULT_RETRIEVAL_TOP_K = 100
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", str(DEFAULT_RETRIEVAL_TOP_K)))


# ---------------------------
# Language model
# ---------------------------

LM_CONTEXT_WORDS = 4


# ---------------------------
# Features & ranking
# ---------------------------

FEATURE_EPS = 1e-6

# fallback score = lm_score - FALLBACK_DTW_WEIGHT * dtw_distance
FALLBACK_DTW_WEIGHT = 0.5

LOG_TOP_N = 5


# ---------------------------
# Keyboard geometry (AZERTY, key size 20)
# ---------------------------

KEY_SIZE = 20.0
KEYBOARD_ROWS: List[str] = [
    "&é\"'(-è_çà)=",
    "azertyuiop^$",
    "qsdfghjklmù*",
    "<wxcvbn,;:!",
]
SPACE_KEY_COORD = (100.0, 90.0 - KEY_SIZE * 4)


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class PredictRequest(BaseModel):
    """
    Request body for POST /predict.
    """

    # NaN and Inf coordinates are rejected with a 422
    model_config = ConfigDict(allow_inf_nan=False)

    path: List[List[float]] = Field(default_factory=list)
    context_words: List[str] = Field(default_factory=list)
    top_k: int = Field(default=LOG_TOP_N, ge=1)

    def as_points(self) -> List[tuple]:
        """
        Keep the (x, y) of every sample; anything shorter than a pair is dropped.
        """
        return [(float(p[0]), float(p[1])) for p in self.path if len(p) >= 2]


class RankedWordItem(BaseModel):
    word: str
    score: float
    embedding_rank: int = Field(ge=1)
    dtw_rank: int = Field(ge=1)


class PredictResponse(BaseModel):
    """
    Response body for POST /predict.
    """

    best_word: str
    ranked: List[RankedWordItem]


class HealthResponse(BaseModel):
    """
    Response body for GET /health.
    """

    status: str
    components: Dict[str, bool] = Field(default_factory=dict)
