from swipe_ranker.merge import assign_dtw_ranks, merge_candidates
from swipe_ranker.pipeline_types import RetrievalHit


def test_first_occurrence_wins_and_keeps_cluster_rank():
    hits = [RetrievalHit(0, 0.1), RetrievalHit(1, 0.2)]
    vocab = {0: ["cat", "cats"], 1: ["cat", "dog"]}

    merged = merge_candidates(hits, vocab)

    assert [c.word for c in merged] == ["cat", "cats", "dog"]
    by_word = {c.word: c for c in merged}
    assert by_word["cat"].embedding_rank == 1
    assert by_word["cat"].embedding_distance == 0.1
    assert by_word["cats"].embedding_rank == 1
    assert by_word["dog"].embedding_rank == 2
    assert by_word["dog"].embedding_distance == 0.2
    # canonical form is the first word of the cluster the word came from
    assert by_word["dog"].canonical_word == "cat"


def test_search_order_is_kept_not_cluster_order():
    hits = [RetrievalHit(7, 0.05), RetrievalHit(2, 0.3)]
    vocab = {2: ["two"], 7: ["seven"]}
    merged = merge_candidates(hits, vocab)
    assert [(c.word, c.embedding_rank) for c in merged] == [("seven", 1), ("two", 2)]


def test_missing_cluster_is_skipped():
    hits = [RetrievalHit(0, 0.1), RetrievalHit(99, 0.2), RetrievalHit(1, 0.3)]
    vocab = {0: ["a"], 1: ["b"]}
    merged = merge_candidates(hits, vocab)
    assert [c.word for c in merged] == ["a", "b"]
    # rank is the position of the hit, skipped hits included
    assert [c.embedding_rank for c in merged] == [1, 3]


def test_empty_hits_give_empty_batch():
    assert merge_candidates([], {0: ["a"]}) == []


def test_dtw_ranks_are_a_permutation_with_stable_ties():
    hits = [RetrievalHit(0, 0.1), RetrievalHit(1, 0.2), RetrievalHit(2, 0.3)]
    vocab = {0: ["w0", "w1"], 1: ["w2"], 2: ["w3"]}
    merged = merge_candidates(hits, vocab)
    for cand, d in zip(merged, [0.5, 0.2, 0.5, 0.1]):
        cand.dtw_by_max = d

    assign_dtw_ranks(merged)

    ranks = {c.word: c.dtw_rank for c in merged}
    assert sorted(ranks.values()) == [1, 2, 3, 4]
    assert ranks == {"w3": 1, "w1": 2, "w0": 3, "w2": 4}
