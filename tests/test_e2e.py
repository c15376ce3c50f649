"""End-to-end tests for the Geyser pipeline.

Exercises the full flow: a vote export is loaded with ``geyser update``, a
model is trained with ``geyser train``, and the trained model is served by
the HTTP API.
"""

from pathlib import Path
from typing import Dict

import pytest
from fastapi.testclient import TestClient

from geyser.api.main import app
from geyser.api.routes.recommend import clear_model_cache
from geyser.cli import main
from geyser.recommender.utils import load_model_artifacts, load_store
from scripts.generate_fake_data import generate_fake_votes

client = TestClient(app)


@pytest.fixture(scope="module")
def pipeline(tmp_path_factory) -> Dict[str, Path]:
    """Run update and train on a generated export."""
    root = tmp_path_factory.mktemp("e2e")
    votes_csv = root / "votes.csv"
    generate_fake_votes(num_users=20, num_articles=30, num_votes=300).to_csv(
        votes_csv, index=False
    )

    dirs = ["--data-dir", str(root / "data"), "--model-dir", str(root / "models")]
    update = ["update", "--votes", str(votes_csv), "--from", "6000", "--to", "6019"]
    assert main([*dirs, *update]) == 0
    assert main([*dirs, "train", "-l", "4", "-i", "30", "-r", "0.02", "--seed", "7"]) == 0

    return {"data": root / "data", "models": root / "models"}


@pytest.fixture(autouse=True)
def fresh_cache():
    clear_model_cache()
    yield
    clear_model_cache()


def test_update_applies_article_range(pipeline):
    store = load_store(pipeline["data"])

    assert store.num_items <= 20
    assert all(
        6000 <= int(store.external_item(i)[len("scp-"):]) <= 6019
        for i in range(store.num_items)
    )


def test_trained_model_matches_database(pipeline):
    model, store = load_model_artifacts(pipeline["models"])

    assert model.latent_factors == 4
    assert store.size() == load_store(pipeline["data"]).size()
    assert model.global_bias == pytest.approx(store.mean_rating())


def test_api_serves_unvoted_articles(pipeline):
    _, store = load_model_artifacts(pipeline["models"])
    user = store.external_user(0)
    voted = {store.external_item(int(i)) for i in store.known_items(0)}

    response = client.get(
        f"/recommend/users/{user}",
        params={"model_dir": str(pipeline["models"]), "top_n": 5},
    )

    assert response.status_code == 200
    articles = [rec["article"] for rec in response.json()["recommendations"]]
    assert len(articles) == min(5, store.num_items - len(voted))
    assert voted.isdisjoint(articles)


def test_api_serves_non_voters(pipeline):
    _, store = load_model_artifacts(pipeline["models"])
    article = store.external_item(0)
    voters = {store.external_user(int(u)) for u in store.known_users(0)}

    response = client.get(
        f"/recommend/articles/{article}",
        params={"model_dir": str(pipeline["models"]), "top_n": 100},
    )

    assert response.status_code == 200
    users = [rec["user"] for rec in response.json()["recommendations"]]
    assert len(users) == store.num_users - len(voters)
    assert voters.isdisjoint(users)


def test_cli_and_api_agree(pipeline, capsys):
    _, store = load_model_artifacts(pipeline["models"])
    user = store.external_user(1)
    dirs = ["--data-dir", str(pipeline["data"]), "--model-dir", str(pipeline["models"])]
    capsys.readouterr()

    assert main([*dirs, "predict", "-t", "1", user]) == 0
    out = capsys.readouterr().out

    response = client.get(
        f"/recommend/users/{user}",
        params={"model_dir": str(pipeline["models"]), "top_n": 1},
    )
    best = response.json()["recommendations"][0]["article"]
    assert best in out
