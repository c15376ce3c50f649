"""Recommendation endpoints for the Geyser API.

This module provides the read-only ranking endpoints: articles a user will
most likely up-vote, and users most likely to up-vote an article. Loaded
models are cached per model directory.
"""

import logging
import os
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter
from pydantic import BaseModel, Field

from geyser import __version__
from geyser.api.exceptions import ModelLoadError, ModelNotFoundError
from geyser.api.metrics import metrics_service
from geyser.recommender.errors import GeyserError
from geyser.recommender.infer import (
    DEFAULT_TOP_N,
    Recommendation,
    advertise_article,
    recommend_articles,
)
from geyser.recommender.model import FactorModel
from geyser.recommender.store import RatingStore
from geyser.recommender.utils import (
    DEFAULT_MODEL_DIR,
    check_model_exists,
    load_model_artifacts,
)

# Configure module logger
logger = logging.getLogger(__name__)

MODEL_DIR_ENV = "GEYSER_MODEL_DIR"

router = APIRouter(
    prefix="/recommend",
    tags=["recommendations"],
)

# model_dir -> (model, store, load time)
_model_cache: Dict[str, Tuple[FactorModel, RatingStore, datetime]] = {}


class ScoredArticle(BaseModel):
    article: str = Field(..., description="Article name")
    score: float = Field(..., description="Predicted vote")


class ScoredUser(BaseModel):
    user: str = Field(..., description="User name")
    score: float = Field(..., description="Predicted vote")


class ArticleRecommendations(BaseModel):
    """Articles a user will most likely up-vote."""

    user: str
    recommendations: List[ScoredArticle]
    model_version: str = __version__


class UserRecommendations(BaseModel):
    """Users most likely to up-vote an article."""

    article: str
    recommendations: List[ScoredUser]
    model_version: str = __version__


def resolve_model_dir(model_dir: Optional[str] = None) -> str:
    """Explicit model directory, else ``$GEYSER_MODEL_DIR``, else "models"."""
    return model_dir or os.getenv(MODEL_DIR_ENV, DEFAULT_MODEL_DIR)


def load_model_if_needed(model_dir: str) -> Tuple[FactorModel, RatingStore]:
    """Load model artifacts from disk unless already cached.

    Args:
        model_dir: Directory holding the artifacts written by ``geyser train``.

    Returns:
        The model and the store snapshot it was trained on.

    Raises:
        ModelNotFoundError: If model files are missing.
        ModelLoadError: If the files exist but cannot be loaded.
    """
    cached = _model_cache.get(model_dir)
    if cached is not None:
        logger.debug(f"Using cached model for {model_dir}")
        return cached[0], cached[1]

    if not check_model_exists(model_dir):
        logger.error(f"Model not found in {model_dir}")
        raise ModelNotFoundError(model_dir)

    try:
        model, store = load_model_artifacts(model_dir)
    except GeyserError:
        raise
    except Exception as e:
        logger.error(f"Failed to load model: {e}", exc_info=True)
        raise ModelLoadError(model_dir, e) from e

    _model_cache[model_dir] = (model, store, datetime.now(timezone.utc))
    logger.info(f"Model loaded from {model_dir}: {model!r}")
    return model, store


def clear_model_cache() -> None:
    """Drop every cached model so the next request reloads it from disk."""
    _model_cache.clear()


def cache_status() -> Dict[str, Dict]:
    """Summary of the cached models, keyed by model directory."""
    return {
        model_dir: {
            "num_users": model.num_users,
            "num_articles": model.num_items,
            "latent_factors": model.latent_factors,
            "loaded_at": loaded_at.isoformat(),
        }
        for model_dir, (model, _, loaded_at) in _model_cache.items()
    }


def _timed(
    kind: str, rank, model_dir: Optional[str], name: str, top_n: int
) -> List[Recommendation]:
    """Load the model and run one ranking, recording it in the metrics.

    Args:
        kind: Metrics key, "user" or "item".
        rank: ``recommend_articles`` or ``advertise_article``.
        model_dir: Requested model directory, resolved with
            :func:`resolve_model_dir`.
        name: External user or article name.
        top_n: Number of results.

    Returns:
        Ranked recommendations.

    Raises:
        GeyserError: Any loading or ranking error. Every one of them is
            counted as an error in the metrics.
    """
    try:
        model, store = load_model_if_needed(resolve_model_dir(model_dir))

        # Latency covers the ranking only, not model loading
        start_time = time.time()
        results = rank(model, store, name, top_n)
    except GeyserError:
        metrics_service.record_error()
        raise

    metrics_service.record_ranking(kind, (time.time() - start_time) * 1000)
    return results


@router.get("/users/{user}", response_model=ArticleRecommendations)
def get_article_recommendations(
    user: str,
    top_n: int = DEFAULT_TOP_N,
    model_dir: Optional[str] = None,
) -> ArticleRecommendations:
    """Articles the user has not voted on yet, best predicted vote first.

    Example:
        GET /recommend/users/Alice?top_n=5
    """
    results = _timed("user", recommend_articles, model_dir, user, top_n)

    return ArticleRecommendations(
        user=user,
        recommendations=[
            ScoredArticle(article=str(rec.external_id), score=rec.score)
            for rec in results
        ],
    )


@router.get("/articles/{article}", response_model=UserRecommendations)
def get_user_recommendations(
    article: str,
    top_n: int = DEFAULT_TOP_N,
    model_dir: Optional[str] = None,
) -> UserRecommendations:
    """Users that have not voted on the article yet, most likely up-voter first.

    Example:
        GET /recommend/articles/scp-6001?top_n=5
    """
    results = _timed("item", advertise_article, model_dir, article, top_n)

    return UserRecommendations(
        article=article,
        recommendations=[
            ScoredUser(user=str(rec.external_id), score=rec.score) for rec in results
        ],
    )


@router.post("/reload-model")
def reload_model(model_dir: Optional[str] = None) -> Dict[str, str]:
    """Drop the cached model and load it again from disk.

    Useful after ``geyser train`` wrote a new model, without restarting the
    server.
    """
    resolved = resolve_model_dir(model_dir)
    logger.info(f"Reloading model from {resolved}")
    _model_cache.pop(resolved, None)

    load_model_if_needed(resolved)
    return {"status": "Model reloaded successfully"}
