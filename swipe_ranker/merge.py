# swipe_ranker/merge.py
from __future__ import annotations

from typing import List, Mapping, Sequence, Set

from loguru import logger

from .pipeline_types import CandidateWord, RetrievalHit


def merge_candidates(
    hits: Sequence[RetrievalHit],
    cluster_to_words: Mapping[int, Sequence[str]],
) -> List[CandidateWord]:
    """
    Flatten retrieval hits into unique literal words.

    Hits are walked in the order the index returned them. ``embedding_rank``
    is the 1-based position of the *hit*, so all words of one cluster share
    it. A word already seen earlier in the batch is dropped; the first
    occurrence wins. Clusters missing from the vocabulary are skipped.
    """
    merged: List[CandidateWord] = []
    seen: Set[str] = set()

    for rank, hit in enumerate(hits, start=1):
        words = cluster_to_words.get(int(hit.cluster_index))
        if not words:
            logger.warning("Cluster {} not found in vocabulary; skipping", hit.cluster_index)
            continue

        canonical = words[0]
        for word in words:
            if word in seen:
                continue
            seen.add(word)
            merged.append(
                CandidateWord(
                    word=word,
                    cluster_index=int(hit.cluster_index),
                    canonical_word=canonical,
                    embedding_distance=float(hit.distance),
                    embedding_rank=rank,
                )
            )

    return merged


def assign_dtw_ranks(candidates: List[CandidateWord]) -> List[CandidateWord]:
    """
    Number candidates 1..K by ascending max-normalized DTW distance.

    ``sorted`` is stable, so ties keep merge order.
    """
    order = sorted(range(len(candidates)), key=lambda i: candidates[i].dtw_distance)
    for rank, idx in enumerate(order, start=1):
        candidates[idx].dtw_rank = rank
    return candidates
