"""Tests for error reporting in the core and the HTTP service."""

from pathlib import Path

import joblib
import pytest
from fastapi.testclient import TestClient

from geyser.api.exceptions import ModelNotFoundError, error_body, status_code_for
from geyser.api.main import app
from geyser.api.routes.recommend import clear_model_cache
from geyser.recommender.errors import (
    DimensionMismatch,
    GeyserError,
    InvalidArgument,
    NotFound,
)
from geyser.recommender.model import FactorModel
from geyser.recommender.store import RatingStore
from geyser.recommender.utils import (
    MODEL_STORE_FILENAME,
    load_model_artifacts,
    save_model_artifacts,
)

client = TestClient(app)


@pytest.fixture
def store() -> RatingStore:
    return RatingStore.from_records(
        [("alice", "scp-6000", "+"), ("bob", "scp-6001", "-"), ("alice", "scp-6002", "+")]
    )


@pytest.fixture
def model_dir(store, tmp_path) -> Path:
    model = FactorModel.new(store.num_users, store.num_items, 2, rng=0)
    save_model_artifacts(model, store, tmp_path)
    clear_model_cache()
    yield tmp_path
    clear_model_cache()


def test_core_errors_derive_from_builtins():
    assert issubclass(InvalidArgument, ValueError)
    assert issubclass(NotFound, LookupError)
    assert issubclass(DimensionMismatch, ValueError)
    for error_type in (InvalidArgument, NotFound, DimensionMismatch):
        assert issubclass(error_type, GeyserError)


def test_error_details():
    error = NotFound("user", "nobody")
    assert error.message == "Unknown user: 'nobody'"
    assert error.details == {"kind": "user", "key": "nobody"}

    mismatch = DimensionMismatch((2, 3), (2, 4))
    assert mismatch.details == {"expected": [2, 3], "actual": [2, 4]}


@pytest.mark.parametrize(
    "error, code",
    [
        (NotFound("item", "scp-1"), 404),
        (InvalidArgument("bad k"), 400),
        (DimensionMismatch((1, 1), (2, 2)), 500),
        (ModelNotFoundError("models"), 503),
        (GeyserError("boom"), 500),
    ],
)
def test_status_code_mapping(error, code):
    assert status_code_for(error) == code


def test_error_body():
    body = error_body(NotFound("user", "nobody"))

    assert body == {
        "error": "Not found",
        "message": "Unknown user: 'nobody'",
        "details": {"kind": "user", "key": "nobody"},
    }


def test_save_rejects_model_for_another_store(store, tmp_path):
    with pytest.raises(DimensionMismatch):
        save_model_artifacts(FactorModel.new(5, 5, 2, rng=0), store, tmp_path)


def test_load_detects_mismatched_store(model_dir):
    other = RatingStore.from_records([("carol", "scp-6000", "+")])
    joblib.dump(other.to_dict(), model_dir / MODEL_STORE_FILENAME)

    with pytest.raises(DimensionMismatch):
        load_model_artifacts(model_dir)


def test_load_missing_directory_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_model_artifacts(tmp_path / "missing")


def test_unknown_user_returns_404(model_dir):
    response = client.get("/recommend/users/nobody", params={"model_dir": str(model_dir)})

    assert response.status_code == 404
    data = response.json()
    assert data["error"] == "Not found"
    assert data["details"] == {"kind": "user", "key": "nobody"}


def test_unknown_article_returns_404(model_dir):
    response = client.get(
        "/recommend/articles/scp-9999", params={"model_dir": str(model_dir)}
    )

    assert response.status_code == 404


def test_negative_top_n_returns_400(model_dir):
    response = client.get(
        "/recommend/users/alice", params={"model_dir": str(model_dir), "top_n": -1}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid argument"


def test_invalid_top_n_type_returns_422(model_dir):
    response = client.get(
        "/recommend/users/alice", params={"model_dir": str(model_dir), "top_n": "many"}
    )

    assert response.status_code == 422


def test_missing_model_returns_503(tmp_path):
    clear_model_cache()
    response = client.get(
        "/recommend/users/alice", params={"model_dir": str(tmp_path / "none")}
    )

    assert response.status_code == 503
    assert "Model not found" in response.json()["message"]


def test_mismatched_artifacts_return_500(model_dir):
    other = RatingStore.from_records([("carol", "scp-6000", "+")])
    joblib.dump(other.to_dict(), model_dir / MODEL_STORE_FILENAME)

    response = client.get("/recommend/users/alice", params={"model_dir": str(model_dir)})

    assert response.status_code == 500
    assert response.json()["details"] == {"expected": [1, 1], "actual": [2, 3]}


def test_health_check_not_affected_by_model_errors():
    response = client.get("/ping")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
