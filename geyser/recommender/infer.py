"""Module for ranking articles and users with a trained model.

Scores every counterpart entity of a fixed user (or article) and returns the
top-K. Ranking is read-only: neither the model nor the store is modified.
"""

import logging
import time
from typing import Hashable, List, NamedTuple

import numpy as np

from geyser.recommender.errors import InvalidArgument
from geyser.recommender.model import FactorModel
from geyser.recommender.store import RatingStore, check_index

# Configure module logger
logger = logging.getLogger(__name__)

# Default parameters
DEFAULT_TOP_N = 10


class Recommendation(NamedTuple):
    """A ranked counterpart: its external id and predicted rating."""

    external_id: Hashable
    score: float


def _rank(scores: np.ndarray, k: int, excluded: np.ndarray) -> np.ndarray:
    """Indices of the top ``k`` scores, ties broken by ascending index."""
    candidates = np.arange(scores.size)
    if excluded.size:
        candidates = np.setdiff1d(candidates, excluded, assume_unique=True)

    # lexsort sorts by the last key first
    order = np.lexsort((candidates, -scores[candidates]))
    return candidates[order[:k]]


def _check_k(k: int) -> None:
    if k < 0:
        raise InvalidArgument(f"k must not be negative, got {k}", details={"k": k})


def top_for_user(
    model: FactorModel,
    store: RatingStore,
    user_index: int,
    k: int = DEFAULT_TOP_N,
    exclude_known: bool = False,
) -> List[Recommendation]:
    """Rank every item for one user.

    Args:
        model: Trained model.
        store: Rating store the model was trained on.
        user_index: Internal user index.
        k: Maximum number of results.
        exclude_known: Drop items the user has already voted on.

    Returns:
        Up to ``k`` recommendations sorted by descending score, ties broken
        by ascending item index. Without exclusion exactly
        ``min(k, num_items)`` entries are returned.

    Raises:
        NotFound: If user_index is out of range.
        InvalidArgument: If k is negative.
        DimensionMismatch: If the model was not sized for the store.
    """
    _check_k(k)
    model.check_compatible(store)
    u = check_index(user_index, model.num_users, "user index")

    start_time = time.time()
    scores = model.user_scores(u)
    excluded = store.known_items(u) if exclude_known else np.empty(0, dtype=np.int64)
    top = _rank(scores, k, excluded)

    results = [
        Recommendation(store.external_item(int(idx)), float(scores[idx]))
        for idx in top
    ]

    logger.debug(
        "Ranked items for user",
        extra={
            "user_idx": u,
            "num_recommendations": len(results),
            "compute_time_ms": round((time.time() - start_time) * 1000, 2),
        },
    )

    return results


def top_for_item(
    model: FactorModel,
    store: RatingStore,
    item_index: int,
    k: int = DEFAULT_TOP_N,
    exclude_known: bool = False,
) -> List[Recommendation]:
    """Rank every user for one item. See :func:`top_for_user`."""
    _check_k(k)
    model.check_compatible(store)
    i = check_index(item_index, model.num_items, "item index")

    start_time = time.time()
    scores = model.item_scores(i)
    excluded = store.known_users(i) if exclude_known else np.empty(0, dtype=np.int64)
    top = _rank(scores, k, excluded)

    results = [
        Recommendation(store.external_user(int(idx)), float(scores[idx]))
        for idx in top
    ]

    logger.debug(
        "Ranked users for item",
        extra={
            "item_idx": i,
            "num_recommendations": len(results),
            "compute_time_ms": round((time.time() - start_time) * 1000, 2),
        },
    )

    return results


def recommend_articles(
    model: FactorModel,
    store: RatingStore,
    user_name: Hashable,
    top_n: int = DEFAULT_TOP_N,
) -> List[Recommendation]:
    """Articles a user will most likely up-vote, skipping ones already voted on.

    Raises:
        NotFound: If the user is not in the store.
    """
    user_idx = store.user_index(user_name)
    logger.info(f"Predicting top {top_n} articles for user {user_name!r}")
    return top_for_user(model, store, user_idx, top_n, exclude_known=True)


def advertise_article(
    model: FactorModel,
    store: RatingStore,
    article_name: Hashable,
    top_n: int = DEFAULT_TOP_N,
) -> List[Recommendation]:
    """Users most likely to up-vote an article they have not voted on yet.

    Raises:
        NotFound: If the article is not in the store.
    """
    item_idx = store.item_index(article_name)
    logger.info(f"Predicting top {top_n} users for article {article_name!r}")
    return top_for_item(model, store, item_idx, top_n, exclude_known=True)
