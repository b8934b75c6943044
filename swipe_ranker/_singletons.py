# swipe_ranker/_singletons.py
from functools import lru_cache

from .engine import SwipePredictor


@lru_cache(maxsize=1)
def get_predictor() -> SwipePredictor:
    return SwipePredictor.from_assets()
