import numpy as np
import pytest

import swipe_ranker.rank as rank
from swipe_ranker.features import FEATURE_SCHEMA, compute_features
from swipe_ranker.pipeline_types import CandidateWord
from swipe_ranker.rank import (
    SCORER_FALLBACK,
    SCORER_MODEL,
    LightGBMRankingModel,
    fallback_scores,
    load_ranking_model,
    order_best_first,
    rank_features,
)


def _cand(word, lm, dtw, emb_rank, dtw_rank, emb=0.2):
    return CandidateWord(
        word=word,
        cluster_index=emb_rank - 1,
        canonical_word=word,
        embedding_distance=emb,
        embedding_rank=emb_rank,
        dtw_raw=dtw,
        dtw_by_max=dtw,
        dtw_by_min=dtw,
        dtw_by_sum=dtw / 2,
        len_swipe=5,
        len_word=5,
        dtw_rank=dtw_rank,
        lm_score=lm,
    )


def _records():
    # fallback: A = -2 - 0.5*4 = -4.0, B = -1 - 0.5*10 = -6.0
    return compute_features([_cand("A", -2.0, 4.0, 2, 1), _cand("B", -1.0, 10.0, 1, 2)])


class DummyRanker:
    """Scores each row by its word_length column; records the matrices it saw."""

    def __init__(self):
        self.calls = []

    def predict(self, rows):
        self.calls.append(rows)
        return rows[:, FEATURE_SCHEMA.index("word_length")]


class FailingRanker:
    def predict(self, rows):
        raise RuntimeError("boom")


class ShortRanker:
    def predict(self, rows):
        return np.zeros((rows.shape[0] - 1,))


def test_fallback_orders_by_lm_minus_half_dtw():
    ranked, scorer = rank_features(_records())
    assert scorer == SCORER_FALLBACK
    assert [r.word for r in ranked] == ["A", "B"]
    assert ranked[0].score == pytest.approx(-4.0)
    assert ranked[1].score == pytest.approx(-6.0)
    assert (ranked[0].embedding_rank, ranked[0].dtw_rank) == (2, 1)


def test_fallback_scores_weight():
    scores = fallback_scores(_records(), dtw_weight=0.0)
    assert list(scores) == [-2.0, -1.0]
    assert fallback_scores([]).shape == (0,)


def test_model_scores_whole_batch_in_one_call():
    records = compute_features(
        [_cand("cat", -1.0, 1.0, 1, 1), _cand("cats", -3.0, 2.0, 1, 2), _cand("at", -2.0, 3.0, 2, 3)]
    )
    model = DummyRanker()

    ranked, scorer = rank_features(records, model)

    assert scorer == SCORER_MODEL
    assert len(model.calls) == 1
    assert model.calls[0].shape == (3, FEATURE_SCHEMA.width)
    assert [r.word for r in ranked] == ["cats", "cat", "at"]
    scores = [r.score for r in ranked]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.parametrize("model", [FailingRanker(), ShortRanker()])
def test_misbehaving_model_falls_back(model):
    ranked, scorer = rank_features(_records(), model)
    assert scorer == SCORER_FALLBACK
    assert [r.word for r in ranked] == ["A", "B"]


def test_ties_keep_input_order():
    assert order_best_first([1.0, 2.0, 1.0, 2.0]) == [1, 3, 0, 2]
    records = compute_features([_cand("x", -1.0, 2.0, 1, 1), _cand("y", -1.0, 2.0, 2, 2)])
    ranked, _ = rank_features(records)
    assert [r.word for r in ranked] == ["x", "y"]


def test_empty_batch():
    assert rank_features([]) == ([], SCORER_FALLBACK)


def test_missing_model_file(tmp_path):
    with pytest.raises((FileNotFoundError, RuntimeError)):
        LightGBMRankingModel.load(tmp_path / "missing.txt")
    assert load_ranking_model(tmp_path / "missing.txt") is None


class _FakeBooster:
    def __init__(self, model_file, width):
        self.model_file = model_file
        self.width = width

    def num_feature(self):
        return self.width

    def num_trees(self):
        return 3

    def predict(self, rows):
        return rows.sum(axis=1)


class _FakeLightGBM:
    def __init__(self, width):
        self.width = width

    def Booster(self, model_file):
        return _FakeBooster(model_file, self.width)


def test_width_mismatch_is_rejected_at_load(tmp_path, monkeypatch):
    model_file = tmp_path / "ranker.txt"
    model_file.write_text("tree")
    monkeypatch.setattr(rank, "lightgbm", _FakeLightGBM(FEATURE_SCHEMA.width - 1))

    with pytest.raises(ValueError):
        LightGBMRankingModel.load(model_file)
    assert load_ranking_model(model_file) is None


def test_loaded_model_checks_row_width(tmp_path, monkeypatch):
    model_file = tmp_path / "ranker.txt"
    model_file.write_text("tree")
    monkeypatch.setattr(rank, "lightgbm", _FakeLightGBM(FEATURE_SCHEMA.width))

    with LightGBMRankingModel.load(model_file) as model:
        assert model.is_loaded
        out = model.predict(np.ones((2, FEATURE_SCHEMA.width)))
        assert list(out) == [39.0, 39.0]
        with pytest.raises(ValueError):
            model.predict(np.ones((2, 5)))
    assert not model.is_loaded
    with pytest.raises(RuntimeError):
        model.predict(np.ones((1, FEATURE_SCHEMA.width)))
