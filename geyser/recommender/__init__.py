"""Latent factor recommendation core.

This module contains the sparse rating store, the biased matrix
factorization model, its stochastic gradient descent trainer and the top-K
ranking functions, plus loading of vote exports and model persistence.
"""

from geyser.recommender.errors import (
    DimensionMismatch,
    GeyserError,
    InvalidArgument,
    NotFound,
)
from geyser.recommender.infer import Recommendation, top_for_item, top_for_user
from geyser.recommender.model import FactorModel
from geyser.recommender.store import RatingStore
from geyser.recommender.train import TrainingConfig, train

__all__ = [
    "DimensionMismatch",
    "FactorModel",
    "GeyserError",
    "InvalidArgument",
    "NotFound",
    "RatingStore",
    "Recommendation",
    "TrainingConfig",
    "top_for_item",
    "top_for_user",
    "train",
]
