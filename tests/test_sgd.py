from __future__ import annotations

import logging

import numpy as np
import pytest

from regsvd.errors import InvalidInputError
from regsvd.optim.sgd import SGD, DecomposableFunction, SparseGradientFunction
from regsvd.svd.function import RegularizedSVDFunction


class _CenterFunction:
    """f_i(x) = |x - c_i|^2 with one target point per term; minimum at the mean."""

    def __init__(self, centers: np.ndarray) -> None:
        self.centers = centers
        self.visited: list[int] = []
        self.evaluations = 0

    def num_functions(self) -> int:
        return int(self.centers.shape[1])

    def evaluate(self, parameters: np.ndarray, i: int) -> float:
        self.evaluations += 1
        diff = parameters[:, 0] - self.centers[:, i]
        return float(diff @ diff)

    def gradient(self, parameters: np.ndarray, i: int, gradient: np.ndarray) -> None:
        self.visited.append(i)
        gradient[:, 0] = 2.0 * (parameters[:, 0] - self.centers[:, i])


def test_protocols_are_recognised() -> None:
    fn = RegularizedSVDFunction([(0, 0, 1.0)], rank=1, rng=0)
    center = _CenterFunction(np.zeros((2, 1)))

    assert isinstance(fn, SparseGradientFunction)
    assert isinstance(center, DecomposableFunction)
    assert not isinstance(center, SparseGradientFunction)


def test_sequential_order_and_step_budget() -> None:
    fn = _CenterFunction(np.zeros((1, 3)))
    SGD(step_size=0.1, max_iterations=7, shuffle=False).optimize(fn, np.ones((1, 1)))

    assert fn.visited == [0, 1, 2, 0, 1, 2, 0]


def test_shuffled_passes_cover_every_sample() -> None:
    fn = _CenterFunction(np.zeros((1, 5)))
    SGD(step_size=0.1, max_iterations=10, shuffle=True, rng=0).optimize(fn, np.ones((1, 1)))

    assert sorted(fn.visited[:5]) == [0, 1, 2, 3, 4]
    assert sorted(fn.visited[5:]) == [0, 1, 2, 3, 4]


def test_converges_towards_mean_and_leaves_input_untouched() -> None:
    centers = np.array([[1.0, 3.0], [-2.0, 2.0]])
    start = np.zeros((2, 1))
    out = SGD(step_size=0.05, max_iterations=2000, shuffle=False).optimize(_CenterFunction(centers), start)

    np.testing.assert_allclose(out[:, 0], centers.mean(axis=1), atol=0.2)
    np.testing.assert_array_equal(start, np.zeros((2, 1)))


def test_sparse_and_dense_updates_agree() -> None:
    data = [(0, 0, 5.0), (0, 1, 3.0), (1, 0, 4.0), (2, 1, 2.0)]
    fn = RegularizedSVDFunction(data, rank=2, lambda_=0.02, rng=11)

    dense = SGD(step_size=0.01, max_iterations=50, shuffle=False, sparse_updates=False, track_objective=True)
    sparse = SGD(step_size=0.01, max_iterations=50, shuffle=False, sparse_updates=True, track_objective=True)

    np.testing.assert_allclose(
        dense.optimize(fn, fn.initial_point),
        sparse.optimize(fn, fn.initial_point),
        rtol=1e-12,
        atol=1e-12,
    )
    assert dense.last_objective == pytest.approx(sparse.last_objective)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"step_size": 0.0},
        {"step_size": -1.0},
        {"max_iterations": 0},
        {"max_iterations": 1.5},
        {"max_iterations": True},
    ],
)
def test_rejects_invalid_configuration(kwargs: dict) -> None:
    with pytest.raises(InvalidInputError):
        SGD(**kwargs)


def test_objective_is_only_evaluated_when_tracked() -> None:
    quiet_fn = _CenterFunction(np.zeros((1, 3)))
    quiet = SGD(step_size=0.1, max_iterations=7, shuffle=False, track_objective=False)
    quiet.optimize(quiet_fn, np.ones((1, 1)))

    tracked_fn = _CenterFunction(np.zeros((1, 3)))
    tracked = SGD(step_size=0.1, max_iterations=7, shuffle=False, track_objective=True)
    tracked.optimize(tracked_fn, np.ones((1, 1)))

    assert quiet_fn.evaluations == 0
    assert quiet.last_objective is None
    assert tracked_fn.evaluations == 7
    assert tracked.last_objective is not None


def test_objective_tracking_follows_debug_logging(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="regsvd.optim.sgd")
    fn = _CenterFunction(np.zeros((1, 2)))
    opt = SGD(step_size=0.1, max_iterations=5, shuffle=False)
    opt.optimize(fn, np.ones((1, 1)))

    assert fn.evaluations == 5
    assert any("SGD pass" in rec.getMessage() for rec in caplog.records)
