"""Tests for the latent factor model."""

import numpy as np
import pytest

from geyser.recommender.errors import DimensionMismatch, InvalidArgument, NotFound
from geyser.recommender.model import INIT_SCALE, FactorModel
from geyser.recommender.store import RatingStore


@pytest.fixture
def model() -> FactorModel:
    return FactorModel.new(4, 5, 3, rng=np.random.default_rng(7), global_bias=0.25)


def test_new_allocates_tables_of_the_requested_size(model):
    assert model.dimensions == (4, 5, 3)
    assert model.user_bias.shape == (4,)
    assert model.item_bias.shape == (5,)
    assert model.user_factors.shape == (4, 3)
    assert model.item_factors.shape == (5, 3)


def test_new_initializes_biases_to_zero_and_factors_small(model):
    assert not model.user_bias.any()
    assert not model.item_bias.any()
    assert np.all(np.abs(model.user_factors) <= INIT_SCALE)
    assert np.all(np.abs(model.item_factors) <= INIT_SCALE)


def test_new_is_deterministic_for_a_seed():
    first = FactorModel.new(3, 3, 2, rng=11)
    second = FactorModel.new(3, 3, 2, rng=np.random.default_rng(11))

    np.testing.assert_array_equal(first.user_factors, second.user_factors)
    np.testing.assert_array_equal(first.item_factors, second.item_factors)


@pytest.mark.parametrize("latent_factors", [0, -2])
def test_new_rejects_non_positive_latent_factors(latent_factors):
    with pytest.raises(InvalidArgument):
        FactorModel.new(2, 2, latent_factors, rng=0)


def test_predict_after_new_is_global_bias_plus_dot(model):
    for u in range(model.num_users):
        for i in range(model.num_items):
            expected = model.global_bias + np.dot(
                model.user_factors[u], model.item_factors[i]
            )
            assert model.predict(u, i) == expected


@pytest.mark.parametrize("user_index, item_index", [(4, 0), (-1, 0), (0, 5), (0, -1)])
def test_predict_rejects_out_of_range_indices(model, user_index, item_index):
    with pytest.raises(NotFound):
        model.predict(user_index, item_index)


def test_vectorized_scores_match_predict(model):
    model.user_bias[:] = [0.1, -0.2, 0.3, 0.0]
    model.item_bias[:] = [0.05, 0.0, -0.1, 0.2, 0.0]

    users = np.array([0, 1, 2, 3, 3])
    items = np.array([4, 3, 2, 1, 0])
    expected = [model.predict(u, i) for u, i in zip(users, items)]

    np.testing.assert_allclose(model.predict_many(users, items), expected)
    np.testing.assert_allclose(
        model.user_scores(2), [model.predict(2, i) for i in range(5)]
    )
    np.testing.assert_allclose(
        model.item_scores(1), [model.predict(u, 1) for u in range(4)]
    )


@pytest.mark.parametrize("regularization", [0.0, 0.01, 0.1])
@pytest.mark.parametrize("rating", [1.0, -1.0])
def test_gradient_step_reduces_error(model, rating, regularization):
    before = abs(model.predict(1, 2) - rating)

    model.gradient_step(1, 2, rating, learning_rate=0.01, regularization=regularization)

    assert abs(model.predict(1, 2) - rating) < before


@pytest.mark.parametrize("regularization", [0.0, 0.01, 0.1])
@pytest.mark.parametrize("rating", [1.0, -1.0])
def test_gradient_step_reduces_error_from_zero_biases(rating, regularization):
    # Zero biases and global bias, so the first prediction is the dot product
    model = FactorModel(
        0.0,
        np.zeros(1),
        np.zeros(1),
        np.array([[0.3, -0.2]]),
        np.array([[0.1, 0.4]]),
    )
    before = abs(model.predict(0, 0) - rating)

    model.gradient_step(0, 0, rating, learning_rate=0.01, regularization=regularization)

    assert abs(model.predict(0, 0) - rating) < before


def test_gradient_step_uses_pre_update_vectors(model):
    lr, reg, rating = 0.05, 0.02, -1.0
    p = model.user_factors[0].copy()
    q = model.item_factors[3].copy()
    bu, bi = model.user_bias[0], model.item_bias[3]
    error = rating - (model.global_bias + bu + bi + np.dot(p, q))

    returned = model.gradient_step(0, 3, rating, lr, reg)

    assert returned == pytest.approx(error)
    assert model.user_bias[0] == pytest.approx(bu + lr * (error - reg * bu))
    assert model.item_bias[3] == pytest.approx(bi + lr * (error - reg * bi))
    np.testing.assert_allclose(model.user_factors[0], p + lr * (error * q - reg * p))
    np.testing.assert_allclose(model.item_factors[3], q + lr * (error * p - reg * q))


def test_gradient_step_only_touches_its_own_rows(model):
    before = model.copy()

    model.gradient_step(2, 1, 1.0, 0.1, 0.0)

    for u in (0, 1, 3):
        np.testing.assert_array_equal(model.user_factors[u], before.user_factors[u])
    for i in (0, 2, 3, 4):
        np.testing.assert_array_equal(model.item_factors[i], before.item_factors[i])


def test_gradient_step_keeps_global_bias_fixed(model):
    for _ in range(10):
        model.gradient_step(0, 0, 1.0, 0.1, 0.01)

    assert model.global_bias == 0.25


def test_check_compatible():
    store = RatingStore.from_records([("A", "X", 1), ("B", "Y", -1)])

    FactorModel.new(2, 2, 1, rng=0).check_compatible(store)
    with pytest.raises(DimensionMismatch):
        FactorModel.new(3, 2, 1, rng=0).check_compatible(store)


def test_from_dict_checks_expected_dimensions(model):
    data = model.to_dict()

    restored = FactorModel.from_dict(data, expected_dimensions=(4, 5, 3))
    np.testing.assert_array_equal(restored.item_factors, model.item_factors)

    with pytest.raises(DimensionMismatch):
        FactorModel.from_dict(data, expected_dimensions=(4, 5, 2))


def test_constructor_rejects_inconsistent_tables():
    with pytest.raises(InvalidArgument):
        FactorModel(0.0, np.zeros(2), np.zeros(3), np.zeros((2, 2)), np.zeros((3, 4)))
    with pytest.raises(InvalidArgument):
        FactorModel(0.0, np.zeros(1), np.zeros(3), np.zeros((2, 2)), np.zeros((3, 2)))
