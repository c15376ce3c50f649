"""Tests for top-K ranking."""

import numpy as np
import pytest

from geyser.recommender.errors import DimensionMismatch, InvalidArgument, NotFound
from geyser.recommender.infer import (
    Recommendation,
    advertise_article,
    recommend_articles,
    top_for_item,
    top_for_user,
)
from geyser.recommender.model import FactorModel
from geyser.recommender.store import RatingStore
from geyser.recommender.train import TrainingConfig, train_prediction_model


@pytest.fixture
def store() -> RatingStore:
    records = []
    for u in range(6):
        for a in range(8):
            if (u + a) % 3 == 0:
                records.append((f"user-{u}", f"scp-{6000 + a}", "+" if a % 2 else "-"))
    return RatingStore.from_records(records)


@pytest.fixture
def trained_model(store) -> FactorModel:
    return train_prediction_model(
        store, TrainingConfig(latent_factors=3, iterations=20, learning_rate=0.05)
    )


@pytest.mark.parametrize("k", [0, 1, 3, 8, 20])
def test_top_for_user_returns_min_k_num_items(trained_model, store, k):
    results = top_for_user(trained_model, store, 0, k)

    assert len(results) == min(k, store.num_items)


def test_top_for_user_sorted_by_non_increasing_score(trained_model, store):
    scores = [rec.score for rec in top_for_user(trained_model, store, 2, 8)]

    assert scores == sorted(scores, reverse=True)


def test_top_for_user_is_deterministic(trained_model, store):
    assert top_for_user(trained_model, store, 3, 5) == top_for_user(
        trained_model, store, 3, 5
    )


def test_scores_match_predict(trained_model, store):
    for rec in top_for_user(trained_model, store, 1, 8):
        item_idx = store.item_index(rec.external_id)
        assert rec.score == pytest.approx(trained_model.predict(1, item_idx))


def test_ties_broken_by_ascending_index():
    store = RatingStore.from_records([("A", "X", 1), ("B", "Y", 1), ("A", "Z", 1)])
    model = FactorModel(0.5, np.zeros(2), np.zeros(3), np.zeros((2, 2)), np.zeros((3, 2)))

    assert top_for_user(model, store, 1, 3) == [
        Recommendation("X", 0.5),
        Recommendation("Y", 0.5),
        Recommendation("Z", 0.5),
    ]
    assert [rec.external_id for rec in top_for_item(model, store, 0, 2)] == ["A", "B"]


def test_exclude_known_skips_voted_items(trained_model, store):
    known = {store.external_item(int(i)) for i in store.known_items(0)}

    results = top_for_user(trained_model, store, 0, 8, exclude_known=True)

    assert len(results) == store.num_items - len(known)
    assert known.isdisjoint(rec.external_id for rec in results)


def test_top_for_item_ranks_users(trained_model, store):
    results = top_for_item(trained_model, store, 4, 10)

    assert len(results) == store.num_users
    assert {rec.external_id for rec in results} == {f"user-{u}" for u in range(6)}
    scores = [rec.score for rec in results]
    assert scores == sorted(scores, reverse=True)


def test_out_of_range_index_raises_not_found(trained_model, store):
    with pytest.raises(NotFound):
        top_for_user(trained_model, store, store.num_users, 5)
    with pytest.raises(NotFound):
        top_for_item(trained_model, store, -1, 5)


def test_negative_k_raises_invalid_argument(trained_model, store):
    with pytest.raises(InvalidArgument):
        top_for_user(trained_model, store, 0, -1)


def test_ranking_does_not_modify_model(trained_model, store):
    before = trained_model.copy()

    top_for_user(trained_model, store, 0, 5, exclude_known=True)
    top_for_item(trained_model, store, 0, 5, exclude_known=True)

    np.testing.assert_array_equal(trained_model.user_factors, before.user_factors)
    np.testing.assert_array_equal(trained_model.item_bias, before.item_bias)
    assert store.size() == (6, 8, 16)


def test_recommend_articles_excludes_voted_articles(trained_model, store):
    results = recommend_articles(trained_model, store, "user-0", top_n=10)

    voted = {"scp-6000", "scp-6003", "scp-6006"}
    assert voted.isdisjoint(rec.external_id for rec in results)
    assert len(results) == 5


def test_advertise_article_excludes_voters(trained_model, store):
    results = advertise_article(trained_model, store, "scp-6001", top_n=2)

    assert len(results) == 2
    assert {"user-2", "user-5"}.isdisjoint(rec.external_id for rec in results)


def test_unknown_external_ids_raise_not_found(trained_model, store):
    with pytest.raises(NotFound):
        recommend_articles(trained_model, store, "nobody")
    with pytest.raises(NotFound):
        advertise_article(trained_model, store, "scp-9999")


def test_model_with_fewer_items_than_store_is_rejected():
    store = RatingStore.from_records([("A", "X", 1), ("B", "Y", 1), ("A", "Z", -1)])
    model = FactorModel.new(2, 2, 2, rng=0)

    with pytest.raises(DimensionMismatch):
        top_for_user(model, store, 0, 10)
    with pytest.raises(DimensionMismatch):
        top_for_item(model, store, 0, 10)


def test_model_with_more_items_than_store_is_rejected():
    store = RatingStore.from_records([("A", "X", 1), ("B", "Y", 1), ("A", "Z", -1)])
    model = FactorModel.new(2, 4, 2, rng=0)

    with pytest.raises(DimensionMismatch):
        top_for_user(model, store, 0, 10)
    with pytest.raises(DimensionMismatch):
        top_for_item(model, store, 2, 10)
