"""Latent factor model training module.

This module fits a biased matrix factorization to the vote data held in a
:class:`~geyser.recommender.store.RatingStore` using stochastic gradient
descent. Each epoch visits every observation once and applies a single
gradient step per vote; training runs for a fixed number of epochs with no
early stopping.
"""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Callable, Optional

import numpy as np
from sklearn.metrics import mean_squared_error as sk_mean_squared_error

from geyser.recommender.errors import InvalidArgument
from geyser.recommender.model import FactorModel, RandomSource, make_rng
from geyser.recommender.store import RatingStore
from geyser.recommender.utils import (
    DEFAULT_DATA_DIR,
    DEFAULT_MODEL_DIR,
    load_store,
    save_model_artifacts,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Model configuration constants
DEFAULT_LATENT_FACTORS = 30
DEFAULT_ITERATIONS = 120
DEFAULT_LEARNING_RATE = 0.004
DEFAULT_REGULARIZATION = 0.02
DEFAULT_RANDOM_STATE = 42

EpochCallback = Callable[[int, float], None]


@dataclass
class TrainingConfig:
    """Hyperparameters for one training run."""

    latent_factors: int = DEFAULT_LATENT_FACTORS
    iterations: int = DEFAULT_ITERATIONS
    learning_rate: float = DEFAULT_LEARNING_RATE
    regularization: float = DEFAULT_REGULARIZATION
    random_state: int = DEFAULT_RANDOM_STATE
    shuffle: bool = True


def mean_squared_error(store: RatingStore, model: FactorModel) -> float:
    """Mean squared prediction error over every observation in the store."""
    users, items, ratings = store.as_arrays()
    if ratings.size == 0:
        raise InvalidArgument("Cannot compute loss on an empty rating store")
    return _loss(model, users, items, ratings)


def _loss(
    model: FactorModel, users: np.ndarray, items: np.ndarray, ratings: np.ndarray
) -> float:
    return float(sk_mean_squared_error(ratings, model.predict_many(users, items)))


def _validate_hyperparameters(
    iterations: int,
    latent_factors: int,
    learning_rate: float,
    regularization: float,
) -> None:
    if iterations <= 0:
        raise InvalidArgument(
            f"iterations must be positive, got {iterations}",
            details={"iterations": iterations},
        )
    if latent_factors <= 0:
        raise InvalidArgument(
            f"latent_factors must be positive, got {latent_factors}",
            details={"latent_factors": latent_factors},
        )
    if learning_rate < 0:
        raise InvalidArgument(
            f"learning_rate must not be negative, got {learning_rate}",
            details={"learning_rate": learning_rate},
        )
    if regularization < 0:
        raise InvalidArgument(
            f"regularization must not be negative, got {regularization}",
            details={"regularization": regularization},
        )


def train(
    store: RatingStore,
    model: FactorModel,
    iterations: int,
    learning_rate: float,
    regularization: float,
    rng: RandomSource = None,
    shuffle: bool = True,
    on_epoch: Optional[EpochCallback] = None,
) -> None:
    """Fit ``model`` to the observations in ``store`` in place.

    For every epoch each observation receives exactly one
    :meth:`FactorModel.gradient_step`. With ``shuffle`` enabled the visiting
    order is a fresh permutation of the store order per epoch, drawn from
    ``rng``; the same seed therefore reproduces the same parameters.

    Args:
        store: Observed votes.
        model: Model sized for ``store``; mutated in place.
        iterations: Number of epochs. Must be positive.
        learning_rate: SGD step size. Must not be negative.
        regularization: L2 penalty weight. Must not be negative.
        rng: Seeded ``numpy.random.Generator`` or integer seed used for
            shuffling.
        shuffle: Visit observations in a per-epoch random order.
        on_epoch: Called as ``on_epoch(epoch, loss)`` after every epoch with
            the mean squared error over all observations.

    Raises:
        InvalidArgument: If a hyperparameter is out of range or the store
            is empty.
        DimensionMismatch: If the model was not sized for the store.
    """
    _validate_hyperparameters(
        iterations, model.latent_factors, learning_rate, regularization
    )

    users, items, ratings = store.as_arrays()
    if ratings.size == 0:
        raise InvalidArgument("Cannot train on an empty rating store")

    model.check_compatible(store)

    generator = make_rng(rng)
    n_obs = ratings.size

    logger.info(
        f"Training on {n_obs} observations for {iterations} iterations "
        f"(latent_factors={model.latent_factors}, learning_rate={learning_rate}, "
        f"regularization={regularization}, shuffle={shuffle})"
    )

    start_time = time.time()
    for epoch in range(1, iterations + 1):
        order = generator.permutation(n_obs) if shuffle else np.arange(n_obs)

        for pos in order:
            model.gradient_step(
                int(users[pos]),
                int(items[pos]),
                float(ratings[pos]),
                learning_rate,
                regularization,
            )

        loss = _loss(model, users, items, ratings)
        logger.debug(f"Epoch {epoch}/{iterations}: mean squared error {loss:.6f}")

        if on_epoch is not None:
            on_epoch(epoch, loss)

    logger.info(
        f"Training finished in {(time.time() - start_time) * 1000:.0f}ms, "
        f"mean squared error: {loss:.6f}"
    )


def train_prediction_model(
    store: RatingStore, config: Optional[TrainingConfig] = None
) -> FactorModel:
    """Create a fresh model for ``store`` and train it.

    The global bias is fixed to the store's mean rating and the factor
    initialization and shuffling share one generator seeded from
    ``config.random_state``.

    Args:
        store: Observed votes.
        config: Hyperparameters. Defaults to :class:`TrainingConfig`.

    Returns:
        Trained FactorModel.
    """
    config = config or TrainingConfig()

    if len(store) == 0:
        raise InvalidArgument("Cannot train on an empty rating store")

    rng = np.random.default_rng(config.random_state)
    model = FactorModel.new(
        store.num_users,
        store.num_items,
        config.latent_factors,
        rng=rng,
        global_bias=store.mean_rating(),
    )

    train(
        store,
        model,
        iterations=config.iterations,
        learning_rate=config.learning_rate,
        regularization=config.regularization,
        rng=rng,
        shuffle=config.shuffle,
    )

    return model


def train_from_database(
    data_dir: str = DEFAULT_DATA_DIR,
    output_dir: str = DEFAULT_MODEL_DIR,
    config: Optional[TrainingConfig] = None,
) -> FactorModel:
    """Train a model from the persisted vote database and save it.

    This is the main entry point for training. It loads the rating store
    written by ``update``, fits a new model and saves the model artifacts
    together with a snapshot of the store they were trained on.

    Args:
        data_dir: Directory holding the rating store.
        output_dir: Directory where model artifacts will be saved.
        config: Hyperparameters. Defaults to :class:`TrainingConfig`.

    Returns:
        Trained FactorModel.

    Raises:
        FileNotFoundError: If the rating store does not exist.
        InvalidArgument: If hyperparameters are invalid or the store is empty.
        OSError: If unable to save model artifacts.

    Example:
        >>> model = train_from_database(
        ...     "data",
        ...     output_dir="models",
        ...     config=TrainingConfig(latent_factors=10, iterations=50),
        ... )
        >>> print(model.dimensions)
    """
    config = config or TrainingConfig()

    logger.info("=" * 60)
    logger.info("Starting latent factor model training")
    logger.info("=" * 60)

    try:
        store = load_store(data_dir)
        logger.info(f"Training configuration: {asdict(config)}")

        model = train_prediction_model(store, config)
        save_model_artifacts(model, store, output_dir)

        logger.info("=" * 60)
        logger.info("Training completed successfully!")
        logger.info("=" * 60)

        return model

    except Exception as e:
        logger.error(f"Training failed: {e}", exc_info=True)
        raise
