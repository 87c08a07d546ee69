"""Stochastic gradient descent over separable objectives."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from ..errors import InvalidInputError, check_positive_int
from ..utils import make_rng


logger = logging.getLogger(__name__)


@runtime_checkable
class DecomposableFunction(Protocol):
    """An objective that is a sum of `num_functions()` per-sample terms."""

    def num_functions(self) -> int: ...

    def evaluate(self, parameters: np.ndarray, i: int) -> float: ...

    def gradient(self, parameters: np.ndarray, i: int, gradient: np.ndarray) -> None: ...


@runtime_checkable
class SparseGradientFunction(DecomposableFunction, Protocol):
    """A decomposable objective whose per-sample gradient touches only a few columns."""

    def sparse_gradient(self, parameters: np.ndarray, i: int) -> Sequence[Tuple[int, np.ndarray]]: ...


class SGD:
    """Plain SGD: `parameters -= step_size * gradient` for one sample at a time.

    Parameters
    ----------
    step_size:
        Learning rate applied to every update.
    max_iterations:
        Total number of single-sample steps (not passes). There is no early stopping.
    shuffle:
        If True, each pass over the samples uses a fresh permutation drawn from `rng`;
        otherwise samples are visited in order 0..n-1, repeatedly.
    rng:
        Generator or seed used for shuffling.
    sparse_updates:
        Use `sparse_gradient` when the function provides it, updating only the touched
        columns instead of applying a full dense gradient.
    track_objective:
        Evaluate every sampled term after its update to report a per-pass objective.
        Defaults to on only when this module's logger is enabled for DEBUG.
    """

    def __init__(
        self,
        step_size: float = 0.01,
        max_iterations: int = 100000,
        *,
        shuffle: bool = True,
        rng: int | np.random.Generator | None = None,
        sparse_updates: bool = True,
        track_objective: bool | None = None,
    ) -> None:
        if not float(step_size) > 0.0:
            raise InvalidInputError(f"step_size must be positive, got {step_size}")

        self.step_size = float(step_size)
        self.max_iterations = check_positive_int(max_iterations, "max_iterations")
        self.shuffle = bool(shuffle)
        self.rng = make_rng(rng)
        self.sparse_updates = bool(sparse_updates)
        self.track_objective = track_objective
        self.last_objective: float | None = None

    def _visitation_order(self, n: int) -> np.ndarray:
        if self.shuffle:
            return self.rng.permutation(n)
        return np.arange(n)

    def optimize(self, function: DecomposableFunction, parameters: np.ndarray) -> np.ndarray:
        """Minimize `function` starting from `parameters`; returns the final iterate.

        The starting point is copied, so the caller's array is left untouched.
        """
        n = int(function.num_functions())
        if n <= 0:
            raise InvalidInputError("function has no terms to optimize")

        iterate = np.array(parameters, dtype=np.float64, copy=True)
        use_sparse = self.sparse_updates and isinstance(function, SparseGradientFunction)
        gradient = None if use_sparse else np.zeros_like(iterate)
        track = self.track_objective
        if track is None:
            track = logger.isEnabledFor(logging.DEBUG)

        order = self._visitation_order(n)
        position = 0
        passes = 0
        objective = 0.0

        for step in range(self.max_iterations):
            if position == n:
                passes += 1
                if track:
                    logger.debug("SGD pass %d: objective %.6f (step %d)", passes, objective, step)
                order = self._visitation_order(n)
                position = 0
                objective = 0.0

            i = int(order[position])
            position += 1

            if use_sparse:
                # Both column gradients are computed before either column moves.
                for col, grad_col in function.sparse_gradient(iterate, i):
                    iterate[:, col] -= self.step_size * grad_col
            else:
                function.gradient(iterate, i, gradient)
                iterate -= self.step_size * gradient

            if track:
                objective += float(function.evaluate(iterate, i))

        self.last_objective = objective if track else None
        logger.info(
            "SGD finished: steps=%d samples=%d full_passes=%d",
            self.max_iterations,
            n,
            passes + (1 if position == n else 0),
        )
        if track:
            logger.debug("SGD last pass objective %.6f", objective)
        return iterate
