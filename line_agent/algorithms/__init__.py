"""
Algorithms Module
Ranking of ambiguous multi-candidate results
"""

from .ranking import (
    RankScore,
    keyword_overlap,
    recency_score,
    rank_candidates,
    rank_gallery,
    rank_tickets,
    rank_knowledge,
)

__all__ = [
    "RankScore",
    "keyword_overlap",
    "recency_score",
    "rank_candidates",
    "rank_gallery",
    "rank_tickets",
    "rank_knowledge",
]
