from __future__ import annotations

"""
Swipe word prediction: one gesture in, a best-first word ranking out.

Pipeline per gesture:
  1) encode the path and fetch the nearest vocabulary clusters
  2) score the typed context once with the language model
  3) merge cluster hits into unique candidate words
  4) DTW of each candidate's ideal key path against the gesture,
     plus the candidate's incremental LM score
  5) DTW ranks over the batch, batch features, ranking model (or fallback)

Every collaborator failure is contained here. An empty gesture, a failed
encoder/index call or an empty retrieval gives an empty prediction; a
language-model or ranking-model failure degrades the scoring.
"""

from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from . import config
from .dtw import DtwMetrics, dtw_metrics
from .embed_index import FaissVocabularyIndex, VectorIndex, load_vocab
from .encoder import GestureEncoder, OnnxGestureEncoder
from .features import FeatureBatchBuilder, describe_batch
from .keyboard import KEYBOARD_COORDS, ideal_path, load_key_coords
from .lm import ContextScore, LanguageModel, load_language_model, score_candidate, score_context
from .merge import assign_dtw_ranks, merge_candidates
from .pipeline_types import CandidateWord, GesturePath, PredictionResult, Point2D, RetrievalHit
from .rank import RankingModel, load_ranking_model, rank_features
from .text_buffer import TextInputBuffer


class SwipePredictor:
    def __init__(
        self,
        encoder: GestureEncoder,
        index: VectorIndex,
        vocab: Mapping[int, Sequence[str]],
        lm: Optional[LanguageModel] = None,
        ranker: Optional[RankingModel] = None,
        key_coords: Optional[Dict[str, Point2D]] = None,
        top_k: int = config.RETRIEVAL_TOP_K,
        dtw_window: int = -1,
    ):
        self.encoder = encoder
        self.index = index
        self.vocab = vocab
        self.lm = lm
        self.ranker = ranker
        self.key_coords = KEYBOARD_COORDS if key_coords is None else key_coords
        self.top_k = top_k
        self.dtw_window = dtw_window

    @classmethod
    def from_assets(cls, assets_dir: Optional[Path] = None) -> "SwipePredictor":
        """
        Load every collaborator from an assets directory.

        Encoder, vocabulary and index are required. The language model and
        the ranking model are optional; without them scoring degrades.
        """
        base = Path(assets_dir) if assets_dir is not None else config.ASSETS_DIR
        logger.info("Initializing swipe predictor from {}", base)

        encoder = OnnxGestureEncoder.load(base / config.SWIPE_ENCODER_PATH.name)
        vocab = load_vocab(base / config.VOCAB_PATH.name)
        index = FaissVocabularyIndex.load(base / config.FAISS_INDEX_PATH.name)
        lm = load_language_model(base / config.KENLM_PATH.name)
        ranker = load_ranking_model(base / config.RANKER_MODEL_PATH.name)

        key_coords = None
        if config.KEYBOARD_COORDS_PATH is not None:
            key_coords = load_key_coords(config.KEYBOARD_COORDS_PATH)

        predictor = cls(encoder, index, vocab, lm=lm, ranker=ranker, key_coords=key_coords)
        logger.info("Swipe predictor ready: {}", predictor.status())
        return predictor

    def status(self) -> Dict[str, bool]:
        return {
            "encoder": self.encoder is not None,
            "index": self.index is not None,
            "vocab": bool(self.vocab),
            "language_model": self.lm is not None,
            "ranking_model": self.ranker is not None,
        }

    # -----------------------
    # Collaborator calls
    # -----------------------

    def _retrieve(self, path: GesturePath) -> List[RetrievalHit]:
        try:
            embedding = self.encoder.encode(path, config.MAX_LENGTH_SWIPE)
        except Exception as e:
            logger.warning("Swipe encoder failed: {}", e)
            return []
        if embedding is None or len(embedding) == 0:
            logger.warning("Swipe encoder returned an empty embedding")
            return []

        try:
            return list(self.index.search(embedding, self.top_k))
        except Exception as e:
            logger.warning("Vocabulary search failed: {}", e)
            return []

    def _context(self, context_words: Sequence[str]) -> Optional[ContextScore]:
        if self.lm is None:
            return None
        try:
            return score_context(self.lm, context_words, config.LM_CONTEXT_WORDS)
        except Exception as e:
            logger.warning("Language model unavailable for this gesture: {}", e)
            return None

    def _lm_score(self, context: Optional[ContextScore], word: str) -> float:
        if context is None:
            return 0.0
        try:
            return score_candidate(self.lm, context, word)
        except Exception as e:
            logger.warning("Error evaluating LM for word '{}': {}", word, e)
            return context.log_prob

    # -----------------------
    # Pipeline
    # -----------------------

    def score_candidates(
        self,
        path: GesturePath,
        candidates: List[CandidateWord],
        context: Optional[ContextScore],
    ) -> List[CandidateWord]:
        """Fill DTW metrics, LM score and DTW rank on a merged batch."""
        # cluster-mates share a canonical path, so DTW is computed once per path
        dtw_by_canonical: Dict[str, DtwMetrics] = {}
        for cand in candidates:
            metrics = dtw_by_canonical.get(cand.canonical_word)
            if metrics is None:
                word_path = ideal_path(cand.canonical_word, self.key_coords)
                metrics = dtw_metrics(path, word_path, self.dtw_window)
                dtw_by_canonical[cand.canonical_word] = metrics

            cand.dtw_raw = metrics.raw
            cand.dtw_by_max = metrics.by_max
            cand.dtw_by_min = metrics.by_min
            cand.dtw_by_sum = metrics.by_sum
            cand.len_swipe = metrics.len_swipe
            cand.len_word = metrics.len_word
            cand.lm_score = self._lm_score(context, cand.word)

        return assign_dtw_ranks(candidates)

    def predict_best_word(
        self,
        path: GesturePath,
        context_words: Sequence[str] = (),
    ) -> PredictionResult:
        if len(path) == 0:
            logger.debug("Empty swipe path; no prediction")
            return PredictionResult()

        hits = self._retrieve(path)
        if not hits:
            logger.warning("No candidates retrieved for swipe of {} points", len(path))
            return PredictionResult()

        context = self._context(context_words)

        candidates = merge_candidates(hits, self.vocab)
        if not candidates:
            logger.warning("No valid candidate words after merging {} hits", len(hits))
            return PredictionResult()

        candidates = self.score_candidates(path, candidates, context)

        builder = FeatureBatchBuilder().extend(candidates)
        records = builder.build()
        if builder.stats is not None:
            logger.debug("Batch stats: {}", describe_batch(builder.stats))

        ranked, scorer = rank_features(records, self.ranker)
        result = PredictionResult(best_word=ranked[0].word, ranked=ranked, scorer=scorer)

        logger.info(
            "Predicted '{}' from {} candidates ({} scorer); top {}: {}",
            result.best_word,
            len(ranked),
            scorer,
            config.LOG_TOP_N,
            [r.word for r in ranked[: config.LOG_TOP_N]],
        )
        return result

    def predict_top_k(
        self,
        path: GesturePath,
        context_words: Sequence[str] = (),
        k: int = config.LOG_TOP_N,
    ) -> List[str]:
        result = self.predict_best_word(path, context_words)
        return [r.word for r in result.ranked[: max(k, 0)]]

    def predict_from_buffer(self, path: GesturePath, buffer: TextInputBuffer) -> PredictionResult:
        return self.predict_best_word(path, buffer.context_words(config.LM_CONTEXT_WORDS))


def predict_best_word(
    predictor: SwipePredictor,
    path: GesturePath,
    context_words: Sequence[str] = (),
) -> Tuple[str, PredictionResult]:
    """Functional entry point: ``(best_word, result)``."""
    result = predictor.predict_best_word(path, context_words)
    return result.best_word, result
