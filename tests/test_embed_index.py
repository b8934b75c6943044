import msgpack
import numpy as np
import pytest

from swipe_ranker.embed_index import FaissVocabularyIndex, hits_from_search, load_vocab, save_vocab
from swipe_ranker.pipeline_types import RetrievalHit


def test_vocab_roundtrip_drops_empty_clusters(tmp_path):
    path = save_vocab({0: ["chat", "chats"], 1: [], 5: ["chien"]}, tmp_path / "vocab.msgpck")
    vocab = load_vocab(path)
    assert vocab == {0: ["chat", "chats"], 5: ["chien"]}


def test_vocab_accepts_string_keys(tmp_path):
    path = tmp_path / "vocab.msgpck"
    path.write_bytes(msgpack.packb({"3": ["le"]}, use_bin_type=True))
    assert load_vocab(path) == {3: ["le"]}


def test_vocab_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_vocab(tmp_path / "missing.msgpck")
    bad = tmp_path / "bad.msgpck"
    bad.write_bytes(msgpack.packb(["not", "a", "map"]))
    with pytest.raises(ValueError):
        load_vocab(bad)


def test_hits_keep_search_order_and_drop_empty_slots():
    hits = hits_from_search(np.array([[0.1, 0.4, 0.0]]), np.array([[7, 2, -1]]))
    assert hits == [RetrievalHit(7, pytest.approx(0.1)), RetrievalHit(2, pytest.approx(0.4))]


class FakeFaissIndex:
    def __init__(self, d, ntotal):
        self.d = d
        self.ntotal = ntotal
        self.k_seen = None

    def search(self, query, k):
        self.k_seen = k
        labels = np.arange(k, dtype="int64").reshape(1, k)[:, ::-1]
        distances = np.linspace(0.1, 0.5, k, dtype="float32").reshape(1, k)
        return distances, labels


def test_search_clamps_k_to_index_size():
    fake = FakeFaissIndex(d=3, ntotal=2)
    index = FaissVocabularyIndex(fake)
    hits = index.search(np.zeros(3), 10)
    assert fake.k_seen == 2
    assert [h.cluster_index for h in hits] == [1, 0]


def test_search_rejects_dimension_mismatch():
    index = FaissVocabularyIndex(FakeFaissIndex(d=3, ntotal=2))
    with pytest.raises(ValueError):
        index.search(np.zeros(4), 1)


def test_search_on_empty_index():
    assert FaissVocabularyIndex(FakeFaissIndex(d=3, ntotal=0)).search(np.zeros(3), 5) == []
