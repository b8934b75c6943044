# swipe_ranker/lm.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence, Tuple

from loguru import logger

from . import config

try:
    import kenlm  # type: ignore
except Exception as e:
    kenlm = None
    _import_err = e

END_SENTENCE = "</s>"


class LMState:
    """
    Opaque n-gram context token.

    Only the language model that produced it can interpret the handle;
    callers just pass it back into ``score``.
    """

    __slots__ = ("_handle",)

    def __init__(self, handle):
        self._handle = handle

    @property
    def handle(self):
        return self._handle


class LanguageModel(Protocol):
    def begin_state(self) -> LMState:
        ...

    def score(self, state: LMState, word: str) -> Tuple[float, LMState]:
        ...

    def end_sentence(self, state: LMState) -> float:
        ...


class KenLMLanguageModel:
    """KenLM binding; scores are log10 probabilities as KenLM reports them."""

    def __init__(self, model):
        self._model = model

    @classmethod
    def load(cls, model_path: Path) -> "KenLMLanguageModel":
        if kenlm is None:
            raise RuntimeError(f"kenlm is not available: {_import_err}")
        if not Path(model_path).exists():
            raise FileNotFoundError(f"KenLM model not found at {model_path}")
        logger.info("Loading KenLM from {}", model_path)
        model = kenlm.Model(str(model_path))
        logger.info("KenLM loaded: order={}", model.order)
        return cls(model)

    def begin_state(self) -> LMState:
        state = kenlm.State()
        self._model.BeginSentenceWrite(state)
        return LMState(state)

    def score(self, state: LMState, word: str) -> Tuple[float, LMState]:
        out = kenlm.State()
        prob = self._model.BaseScore(state.handle, word, out)
        return float(prob), LMState(out)

    def end_sentence(self, state: LMState) -> float:
        out = kenlm.State()
        return float(self._model.BaseScore(state.handle, END_SENTENCE, out))


def load_language_model(model_path: Path = config.KENLM_PATH) -> Optional[KenLMLanguageModel]:
    try:
        return KenLMLanguageModel.load(model_path)
    except FileNotFoundError:
        logger.info("KenLM model not found (optional): {}", model_path)
    except Exception as e:
        logger.warning("Failed to load KenLM model '{}': {}", model_path, e)
    return None


# ---------------------------------------------------------------------------
# Scoring helpers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ContextScore:
    """Running log-probability and state after the typed context."""

    log_prob: float
    state: LMState


def score_context(
    lm: LanguageModel,
    words: Sequence[str],
    limit: int = config.LM_CONTEXT_WORDS,
) -> ContextScore:
    """
    Fold the last ``limit`` non-empty context words from the sentence start.

    Computed once per gesture and shared by every candidate. On a scoring
    error the context is dropped and the begin-sentence state is used.
    """
    context = [w for w in words if w]
    if limit == 0:
        context = []
    elif limit > 0:
        context = context[-limit:]

    state = lm.begin_state()
    total = 0.0
    try:
        for word in context:
            prob, state = lm.score(state, word)
            total += prob
    except Exception as e:
        logger.warning("Error pre-computing LM context {}: {}", context, e)
        return ContextScore(0.0, lm.begin_state())
    return ContextScore(total, state)


def score_candidate(lm: LanguageModel, context: ContextScore, word: str) -> float:
    """Context score plus the candidate word and end-of-sentence increments."""
    prob, state = lm.score(context.state, word)
    return context.log_prob + prob + lm.end_sentence(state)


def evaluate_sequence(lm: LanguageModel, words: Sequence[str]) -> float:
    """Whole-sentence log-probability including ``</s>``; 0.0 on error."""
    try:
        state = lm.begin_state()
        total = 0.0
        for word in words:
            if not word:
                continue
            prob, state = lm.score(state, word)
            total += prob
        return total + lm.end_sentence(state)
    except Exception as e:
        logger.error("Error evaluating sequence: {}", e)
        return 0.0
