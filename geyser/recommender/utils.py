"""Utility functions for persisting votes and trained models.

This module provides helpers to save and load the rating store written by
``update`` and the model artifacts written by ``train``. Artifacts are stored
with joblib as plain dictionaries of numpy arrays and Python containers, so
they can be reloaded without unpickling library classes.
"""

import logging
from pathlib import Path
from typing import Tuple, Union

import joblib

from geyser.recommender.model import FactorModel
from geyser.recommender.store import RatingStore

# Configure module logger
logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_DATA_DIR = "data"
DEFAULT_MODEL_DIR = "models"

# Artifact filenames
STORE_FILENAME = "rating_store.joblib"
MODEL_FILENAME = "factor_model.joblib"
MODEL_STORE_FILENAME = "training_store.joblib"


def save_store(store: RatingStore, data_dir: PathLike = DEFAULT_DATA_DIR) -> Path:
    """Save a rating store, overwriting any existing one.

    Args:
        store: Rating store to save.
        data_dir: Directory where the store will be saved. Created if
            missing.

    Returns:
        Path of the written file.

    Raises:
        OSError: If unable to create the directory or write the file.
    """
    output_path = Path(data_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    store_path = output_path / STORE_FILENAME
    joblib.dump(store.to_dict(), store_path)
    logger.info(f"Saved rating store ({store!r}) to {store_path}")

    return store_path


def load_store(data_dir: PathLike = DEFAULT_DATA_DIR) -> RatingStore:
    """Load the rating store saved by :func:`save_store`.

    Raises:
        FileNotFoundError: If the store file does not exist.
    """
    store_path = Path(data_dir) / STORE_FILENAME
    if not store_path.exists():
        raise FileNotFoundError(
            f"Rating store not found: {store_path}. Run 'geyser update' first."
        )

    store = RatingStore.from_dict(joblib.load(store_path))
    logger.info(f"Loaded rating store ({store!r}) from {store_path}")

    return store


def save_model_artifacts(
    model: FactorModel,
    store: RatingStore,
    output_dir: PathLike = DEFAULT_MODEL_DIR,
    model_filename: str = MODEL_FILENAME,
    store_filename: str = MODEL_STORE_FILENAME,
) -> None:
    """Save a trained model and the rating store it was trained on.

    The store snapshot keeps the id mappings and known votes used at
    prediction time, independent of later ``update`` runs.

    Args:
        model: Trained FactorModel to save.
        store: Rating store the model was trained on.
        output_dir: Directory path where artifacts will be saved.
        model_filename: Filename for the model (default: "factor_model.joblib").
        store_filename: Filename for the store snapshot
            (default: "training_store.joblib").

    Raises:
        DimensionMismatch: If the model does not fit the store.
        OSError: If unable to create output directory or save files.

    Example:
        >>> save_model_artifacts(model, store, "models")
    """
    model.check_compatible(store)

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    logger.info(f"Saving model artifacts to {output_dir}")

    model_path = output_path / model_filename
    joblib.dump(
        {"dimensions": model.dimensions, "parameters": model.to_dict()}, model_path
    )
    logger.info(f"Saved model to {model_path}")

    store_path = output_path / store_filename
    joblib.dump(store.to_dict(), store_path)
    logger.info(f"Saved store snapshot to {store_path}")


def load_model_artifacts(
    model_dir: PathLike = DEFAULT_MODEL_DIR,
    model_filename: str = MODEL_FILENAME,
    store_filename: str = MODEL_STORE_FILENAME,
) -> Tuple[FactorModel, RatingStore]:
    """Load a trained model and its rating store snapshot from disk.

    Args:
        model_dir: Directory path where artifacts are stored.
        model_filename: Filename for the model (default: "factor_model.joblib").
        store_filename: Filename for the store snapshot
            (default: "training_store.joblib").

    Returns:
        A tuple containing:
            - Loaded FactorModel
            - Loaded RatingStore

    Raises:
        FileNotFoundError: If any required artifact file is missing.
        DimensionMismatch: If the model tables do not match the saved
            dimensions or the store's index space.

    Example:
        >>> model, store = load_model_artifacts("models")
        >>> print(f"Model has {model.latent_factors} latent factors")
    """
    model_path = Path(model_dir)

    if not model_path.exists():
        raise FileNotFoundError(f"Model directory does not exist: {model_dir}")

    logger.info(f"Loading model artifacts from {model_dir}")

    model_file = model_path / model_filename
    if not model_file.exists():
        raise FileNotFoundError(f"Model file not found: {model_file}")
    saved = joblib.load(model_file)
    model = FactorModel.from_dict(
        saved["parameters"], expected_dimensions=saved["dimensions"]
    )
    logger.info(f"Loaded model from {model_file}")
    logger.info(f"Model dimensions: {model.dimensions}")

    store_file = model_path / store_filename
    if not store_file.exists():
        raise FileNotFoundError(f"Store snapshot not found: {store_file}")
    store = RatingStore.from_dict(joblib.load(store_file))
    logger.info(f"Loaded store snapshot from {store_file}")

    model.check_compatible(store)

    return model, store


def get_model_paths(
    model_dir: PathLike,
    model_filename: str = MODEL_FILENAME,
    store_filename: str = MODEL_STORE_FILENAME,
) -> Tuple[Path, Path]:
    """Get file paths for model artifacts without loading them."""
    model_path = Path(model_dir)
    return model_path / model_filename, model_path / store_filename


def check_model_exists(model_dir: PathLike) -> bool:
    """Check if all required model artifacts exist.

    Args:
        model_dir: Directory path where artifacts should be stored.

    Returns:
        True if all model files exist, False otherwise.
    """
    return all(path.exists() for path in get_model_paths(model_dir))
