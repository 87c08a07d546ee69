from __future__ import annotations

import numpy as np
import pytest

from regsvd.data import RatingRecord
from regsvd.errors import InvalidInputError
from regsvd.svd.function import RegularizedSVDFunction


RATINGS = [(0, 0, 5.0), (0, 1, 3.0), (1, 0, 4.0), (3, 2, 1.0)]


def test_dimensions_follow_max_indices() -> None:
    fn = RegularizedSVDFunction(RATINGS, rank=2, rng=0)

    assert fn.num_users == 4
    assert fn.num_items == 3
    assert fn.num_functions() == 4
    assert fn.initial_point.shape == (2, 7)


def test_initial_point_is_small_nonzero_and_seeded() -> None:
    a = RegularizedSVDFunction(RATINGS, rank=4, rng=123).initial_point
    b = RegularizedSVDFunction(RATINGS, rank=4, rng=123).initial_point

    np.testing.assert_array_equal(a, b)
    assert np.all(a >= 0.0)
    assert np.all(a < 1.0 / np.sqrt(4))
    assert np.count_nonzero(a) == a.size
    # Columns differ, so the factors are not symmetric at start.
    assert not np.allclose(a[:, 0], a[:, 1])


@pytest.mark.parametrize(
    "data, rank",
    [([], 2), (RATINGS, 0), (RATINGS, -1), (RATINGS, 2.9), (RATINGS, True), (RATINGS, "2")],
)
def test_rejects_empty_data_and_bad_rank(data: list, rank: object) -> None:
    with pytest.raises(InvalidInputError):
        RegularizedSVDFunction(data, rank=rank, rng=0)


def test_rejects_negative_lambda() -> None:
    with pytest.raises(InvalidInputError):
        RegularizedSVDFunction(RATINGS, rank=2, lambda_=-0.1, rng=0)


def test_evaluate_matches_closed_form() -> None:
    fn = RegularizedSVDFunction([RatingRecord(1, 0, 4.0)], rank=2, lambda_=0.5, rng=0)
    params = np.array(
        [
            [1.0, 0.0, 2.0],
            [2.0, 0.0, -1.0],
        ]
    )
    # item 0 -> column 0, user 1 -> column num_items + 1 = 2
    item_vec = params[:, 0]
    user_vec = params[:, 2]
    error = 4.0 - float(item_vec @ user_vec)
    expected = error**2 + 0.5 * (float(item_vec @ item_vec) + float(user_vec @ user_vec))

    assert fn.evaluate(params, 0) == pytest.approx(expected)


def test_evaluate_is_pure() -> None:
    fn = RegularizedSVDFunction(RATINGS, rank=3, lambda_=0.1, rng=1)
    params = fn.initial_point.copy()
    before = params.copy()

    first = fn.evaluate(params, 2)
    second = fn.evaluate(params, 2)

    assert first == second
    np.testing.assert_array_equal(params, before)


def test_evaluate_all_is_sum_of_terms() -> None:
    fn = RegularizedSVDFunction(RATINGS, rank=3, lambda_=0.1, rng=1)
    params = fn.initial_point

    total = sum(fn.evaluate(params, i) for i in range(fn.num_functions()))

    assert fn.evaluate_all(params) == pytest.approx(total)


@pytest.mark.parametrize("idx", [0, 1, 2, 3])
def test_gradient_matches_finite_differences(idx: int) -> None:
    fn = RegularizedSVDFunction(RATINGS, rank=3, lambda_=0.1, rng=7)
    params = np.random.default_rng(99).normal(size=fn.initial_point.shape)
    grad = np.full_like(params, np.nan)
    fn.gradient(params, idx, grad)

    eps = 1e-6
    numeric = np.zeros_like(params)
    for r in range(params.shape[0]):
        for c in range(params.shape[1]):
            plus = params.copy()
            minus = params.copy()
            plus[r, c] += eps
            minus[r, c] -= eps
            numeric[r, c] = (fn.evaluate(plus, idx) - fn.evaluate(minus, idx)) / (2 * eps)

    np.testing.assert_allclose(grad, numeric, rtol=1e-5, atol=1e-6)

    user, item, _ = RATINGS[idx]
    touched = {item, fn.num_items + user}
    for c in range(params.shape[1]):
        if c not in touched:
            assert np.all(grad[:, c] == 0.0)


def test_gradient_does_not_leak_between_calls() -> None:
    fn = RegularizedSVDFunction(RATINGS, rank=2, lambda_=0.1, rng=3)
    params = fn.initial_point
    shared = np.zeros_like(params)
    fresh = np.zeros_like(params)

    fn.gradient(params, 0, shared)
    fn.gradient(params, 3, shared)
    fn.gradient(params, 3, fresh)

    np.testing.assert_array_equal(shared, fresh)


def test_sparse_gradient_matches_dense() -> None:
    fn = RegularizedSVDFunction(RATINGS, rank=2, lambda_=0.2, rng=5)
    params = fn.initial_point
    dense = np.zeros_like(params)
    fn.gradient(params, 1, dense)

    sparse = np.zeros_like(params)
    cols = []
    for col, g in fn.sparse_gradient(params, 1):
        sparse[:, col] = g
        cols.append(col)

    assert cols == [1, fn.num_items + 0]
    np.testing.assert_array_equal(dense, sparse)


@pytest.mark.parametrize("idx", [-1, 4, 100])
def test_out_of_range_index_raises(idx: int) -> None:
    fn = RegularizedSVDFunction(RATINGS, rank=2, rng=0)
    grad = np.zeros_like(fn.initial_point)

    with pytest.raises(IndexError):
        fn.evaluate(fn.initial_point, idx)
    with pytest.raises(IndexError):
        fn.gradient(fn.initial_point, idx, grad)
