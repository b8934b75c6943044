import pytest
from pydantic import ValidationError

from swipe_ranker import config
from swipe_ranker.config import HealthResponse, PredictRequest, PredictResponse, RankedWordItem


def test_predict_request_defaults_and_points():
    req = PredictRequest(path=[[1, 2], [3, 4, 99], [5]])
    assert req.context_words == []
    assert req.top_k == config.LOG_TOP_N
    assert req.as_points() == [(1.0, 2.0), (3.0, 4.0)]


def test_ranks_are_one_based():
    with pytest.raises(ValidationError):
        RankedWordItem(word="x", score=0.0, embedding_rank=0, dtw_rank=1)


def test_predict_response_structure():
    item = RankedWordItem(word="chat", score=-1.5, embedding_rank=1, dtw_rank=2)
    resp = PredictResponse(best_word="chat", ranked=[item])
    assert resp.ranked[0].word == resp.best_word


def test_health_response():
    health = HealthResponse(status="healthy")
    assert health.components == {}


def test_encoder_and_keyboard_constants():
    assert config.MAX_LENGTH_SWIPE == 520
    assert config.SWIPE_PAD_VALUE == -200.0
    assert config.SPACE_KEY_COORD == (100.0, 10.0)
    assert len(config.KEYBOARD_ROWS) == 4


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
def test_predict_request_rejects_non_finite_coordinates(bad):
    with pytest.raises(ValidationError):
        PredictRequest(path=[[bad, 1.0], [2.0, 3.0]])
