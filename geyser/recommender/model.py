"""Biased latent factor model trained by stochastic gradient descent.

The predicted rating of user ``u`` for item ``i`` is::

    global_bias + user_bias[u] + item_bias[i] + user_factor[u] . item_factor[i]

``global_bias`` is the dataset mean and stays fixed during training; the
per-entity biases and latent factors are learned.
"""

import logging
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from geyser.recommender.errors import DimensionMismatch, InvalidArgument, NotFound
from geyser.recommender.store import check_index

# Configure module logger
logger = logging.getLogger(__name__)

# Latent factors are initialized uniformly in [-INIT_SCALE, INIT_SCALE]
INIT_SCALE = 0.1

RandomSource = Union[np.random.Generator, int, None]


def make_rng(rng: RandomSource) -> np.random.Generator:
    """Return a numpy Generator for a seed, an existing Generator or None."""
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


class FactorModel:
    """Parameter tables of a rank-K biased matrix factorization.

    Attributes:
        global_bias: Dataset-wide mean rating.
        user_bias: Array of shape (num_users,).
        item_bias: Array of shape (num_items,).
        user_factors: Array of shape (num_users, latent_factors).
        item_factors: Array of shape (num_items, latent_factors).
    """

    def __init__(
        self,
        global_bias: float,
        user_bias: np.ndarray,
        item_bias: np.ndarray,
        user_factors: np.ndarray,
        item_factors: np.ndarray,
    ):
        user_bias = np.asarray(user_bias, dtype=np.float64)
        item_bias = np.asarray(item_bias, dtype=np.float64)
        user_factors = np.asarray(user_factors, dtype=np.float64)
        item_factors = np.asarray(item_factors, dtype=np.float64)

        if user_factors.ndim != 2 or item_factors.ndim != 2:
            raise InvalidArgument("Factor tables must be two-dimensional")
        if user_factors.shape[1] != item_factors.shape[1]:
            raise InvalidArgument(
                "User and item factors must have the same number of latent factors",
                details={
                    "user_factors": list(user_factors.shape),
                    "item_factors": list(item_factors.shape),
                },
            )
        if user_factors.shape[1] <= 0:
            raise InvalidArgument("latent_factors must be positive")
        if user_bias.shape != (user_factors.shape[0],) or item_bias.shape != (
            item_factors.shape[0],
        ):
            raise InvalidArgument(
                "Bias tables must have one entry per user and per item",
                details={
                    "user_bias": list(user_bias.shape),
                    "item_bias": list(item_bias.shape),
                },
            )

        self.global_bias = float(global_bias)
        self.user_bias = user_bias
        self.item_bias = item_bias
        self.user_factors = user_factors
        self.item_factors = item_factors

    @classmethod
    def new(
        cls,
        num_users: int,
        num_items: int,
        latent_factors: int,
        rng: RandomSource = None,
        global_bias: float = 0.0,
    ) -> "FactorModel":
        """Allocate a freshly initialized model.

        Biases start at zero and latent factors are drawn uniformly from
        ``[-0.1, 0.1]`` using ``rng``.

        Args:
            num_users: Number of users in the rating store.
            num_items: Number of items in the rating store.
            latent_factors: Length K of every latent vector. Must be positive.
            rng: Seeded ``numpy.random.Generator`` or an integer seed.
            global_bias: Dataset mean rating.

        Returns:
            New FactorModel.

        Raises:
            InvalidArgument: If latent_factors is not positive or a dimension
                is negative.
        """
        if latent_factors <= 0:
            raise InvalidArgument(
                f"latent_factors must be positive, got {latent_factors}",
                details={"latent_factors": latent_factors},
            )
        if num_users < 0 or num_items < 0:
            raise InvalidArgument(
                "num_users and num_items must not be negative",
                details={"num_users": num_users, "num_items": num_items},
            )

        generator = make_rng(rng)
        user_factors = generator.uniform(
            -INIT_SCALE, INIT_SCALE, size=(num_users, latent_factors)
        )
        item_factors = generator.uniform(
            -INIT_SCALE, INIT_SCALE, size=(num_items, latent_factors)
        )

        logger.debug(
            f"Initialized model: {num_users} users, {num_items} items, "
            f"{latent_factors} latent factors"
        )

        return cls(
            global_bias=global_bias,
            user_bias=np.zeros(num_users),
            item_bias=np.zeros(num_items),
            user_factors=user_factors,
            item_factors=item_factors,
        )

    @property
    def num_users(self) -> int:
        return self.user_factors.shape[0]

    @property
    def num_items(self) -> int:
        return self.item_factors.shape[0]

    @property
    def latent_factors(self) -> int:
        return self.user_factors.shape[1]

    @property
    def dimensions(self) -> Tuple[int, int, int]:
        return self.num_users, self.num_items, self.latent_factors

    def check_compatible(self, store: Any) -> None:
        """Raise DimensionMismatch unless the tables fit ``store``'s indices."""
        expected = (store.num_users, store.num_items)
        actual = (self.num_users, self.num_items)
        if expected != actual:
            raise DimensionMismatch(expected, actual)

    def _check_user(self, user_index: int) -> int:
        return check_index(user_index, self.num_users, "user index")

    def _check_item(self, item_index: int) -> int:
        return check_index(item_index, self.num_items, "item index")

    def predict(self, user_index: int, item_index: int) -> float:
        """Predict the rating of one user for one item."""
        u = self._check_user(user_index)
        i = self._check_item(item_index)
        return float(
            self.global_bias
            + self.user_bias[u]
            + self.item_bias[i]
            + np.dot(self.user_factors[u], self.item_factors[i])
        )

    def predict_many(self, user_indices: np.ndarray, item_indices: np.ndarray) -> np.ndarray:
        """Vectorized :meth:`predict` over aligned index arrays."""
        users = np.asarray(user_indices, dtype=np.int64)
        items = np.asarray(item_indices, dtype=np.int64)
        if users.shape != items.shape:
            raise InvalidArgument("user and item index arrays must have the same shape")
        if users.size and (users.min() < 0 or users.max() >= self.num_users):
            raise NotFound("user index", int(users[(users < 0) | (users >= self.num_users)][0]))
        if items.size and (items.min() < 0 or items.max() >= self.num_items):
            raise NotFound("item index", int(items[(items < 0) | (items >= self.num_items)][0]))

        interaction = np.einsum(
            "ij,ij->i", self.user_factors[users], self.item_factors[items]
        )
        return self.global_bias + self.user_bias[users] + self.item_bias[items] + interaction

    def user_scores(self, user_index: int) -> np.ndarray:
        """Predicted ratings of one user for every item."""
        u = self._check_user(user_index)
        return (
            self.global_bias
            + self.user_bias[u]
            + self.item_bias
            + self.item_factors @ self.user_factors[u]
        )

    def item_scores(self, item_index: int) -> np.ndarray:
        """Predicted ratings of every user for one item."""
        i = self._check_item(item_index)
        return (
            self.global_bias
            + self.user_bias
            + self.item_bias[i]
            + self.user_factors @ self.item_factors[i]
        )

    def gradient_step(
        self,
        user_index: int,
        item_index: int,
        actual_rating: float,
        learning_rate: float,
        regularization: float,
    ) -> float:
        """Apply one SGD update for a single observation.

        Both latent vectors are updated from the values they had before the
        step, so the item update sees the old user vector and vice versa.
        ``global_bias`` is not touched.

        Args:
            user_index: Internal user index.
            item_index: Internal item index.
            actual_rating: Observed rating.
            learning_rate: Step size.
            regularization: L2 penalty weight.

        Returns:
            Prediction error before the update.
        """
        u = self._check_user(user_index)
        i = self._check_item(item_index)

        user_vec = self.user_factors[u].copy()
        item_vec = self.item_factors[i].copy()
        error = actual_rating - (
            self.global_bias
            + self.user_bias[u]
            + self.item_bias[i]
            + np.dot(user_vec, item_vec)
        )

        self.user_bias[u] += learning_rate * (error - regularization * self.user_bias[u])
        self.item_bias[i] += learning_rate * (error - regularization * self.item_bias[i])
        self.user_factors[u] += learning_rate * (error * item_vec - regularization * user_vec)
        self.item_factors[i] += learning_rate * (error * user_vec - regularization * item_vec)

        return float(error)

    def copy(self) -> "FactorModel":
        return FactorModel(
            global_bias=self.global_bias,
            user_bias=self.user_bias.copy(),
            item_bias=self.item_bias.copy(),
            user_factors=self.user_factors.copy(),
            item_factors=self.item_factors.copy(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global_bias": self.global_bias,
            "user_bias": self.user_bias,
            "item_bias": self.item_bias,
            "user_factors": self.user_factors,
            "item_factors": self.item_factors,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        expected_dimensions: Optional[Tuple[int, int, int]] = None,
    ) -> "FactorModel":
        """Rebuild a model serialized with :meth:`to_dict`.

        Raises:
            DimensionMismatch: If ``expected_dimensions`` is given and the
                restored tables have a different shape.
        """
        model = cls(
            global_bias=data["global_bias"],
            user_bias=data["user_bias"],
            item_bias=data["item_bias"],
            user_factors=data["user_factors"],
            item_factors=data["item_factors"],
        )
        if expected_dimensions is not None and model.dimensions != tuple(
            expected_dimensions
        ):
            raise DimensionMismatch(tuple(expected_dimensions), model.dimensions)
        return model

    def __repr__(self) -> str:
        return (
            f"FactorModel(users={self.num_users}, items={self.num_items}, "
            f"latent_factors={self.latent_factors})"
        )

