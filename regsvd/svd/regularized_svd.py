"""Regularized SVD: low-rank factorization of ratings trained with SGD.

Each rating r(u, i) is approximated by <q_i, p_u>, where q_i is a column of the
item matrix U and p_u a column of the user matrix V. Training minimizes

    sum over ratings of (r - <q_i, p_u>)^2 + lambda * (|q_i|^2 + |p_u|^2)

one rating at a time (Funk / Paterek style regularized SVD).

Example
-------
>>> rsvd = RegularizedSVD(iterations=1000, alpha=0.01, lambda_=0.02, rng=0)
>>> U, V = rsvd.apply([(0, 0, 5.0), (0, 1, 3.0), (1, 0, 4.0)], rank=2)
>>> U.shape, V.shape
((2, 2), (2, 2))
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, Tuple

import numpy as np

from ..cf.traits import register_factorizer_traits
from ..data import as_coordinate_list
from ..errors import InvalidInputError, check_positive_int
from ..optim.sgd import SGD, DecomposableFunction
from ..utils import make_rng
from .function import RegularizedSVDFunction


logger = logging.getLogger(__name__)


class Optimizer(Protocol):
    def optimize(self, function: DecomposableFunction, parameters: np.ndarray) -> np.ndarray: ...


@register_factorizer_traits(uses_coordinate_list=True)
class RegularizedSVD:
    """Factorize coordinate-list ratings into item and user matrices.

    Parameters
    ----------
    iterations:
        Number of single-rating SGD steps.
    alpha:
        SGD learning rate.
    lambda_:
        L2 regularization strength.
    shuffle:
        Visit ratings in a fresh random order on every pass instead of sequentially.
        Only used by the default optimizer.
    optimizer:
        Anything with `optimize(function, parameters) -> parameters`. Defaults to
        `SGD(step_size=alpha, max_iterations=iterations, shuffle=shuffle)`.
    rng:
        Seed for the initial factors (and shuffling). An int or None is turned into a
        new Generator on every `apply()` call, so a seeded instance gives the same
        factors each time. A Generator passed in is shared and advances across calls.
    """

    def __init__(
        self,
        iterations: int = 10,
        alpha: float = 0.01,
        lambda_: float = 0.02,
        *,
        shuffle: bool = False,
        optimizer: Optimizer | None = None,
        rng: int | np.random.Generator | None = None,
    ) -> None:
        if not float(alpha) > 0.0:
            raise InvalidInputError(f"alpha must be positive, got {alpha}")
        if not float(lambda_) >= 0.0:
            raise InvalidInputError(f"lambda must be non-negative, got {lambda_}")

        self.iterations = check_positive_int(iterations, "iterations")
        self.alpha = float(alpha)
        self.lambda_ = float(lambda_)
        self.shuffle = bool(shuffle)
        self.optimizer = optimizer
        self.rng = rng

    def _make_optimizer(self, rng: np.random.Generator) -> Optimizer:
        if self.optimizer is not None:
            return self.optimizer
        return SGD(step_size=self.alpha, max_iterations=self.iterations, shuffle=self.shuffle, rng=rng)

    def apply(self, data: Any, rank: int) -> Tuple[np.ndarray, np.ndarray]:
        """Train on `data` and return `(U, V)`.

        U has shape (rank, num_items) and V has shape (rank, num_users), where the
        counts are 1 + the largest index seen. Both are fresh arrays.
        """
        rng = make_rng(self.rng)
        function = RegularizedSVDFunction(data, rank, self.lambda_, rng=rng)
        logger.info(
            "RegularizedSVD: users=%d items=%d ratings=%d rank=%d iterations=%d alpha=%g lambda=%g",
            function.num_users,
            function.num_items,
            function.num_functions(),
            function.rank,
            self.iterations,
            self.alpha,
            self.lambda_,
        )

        parameters = self._make_optimizer(rng).optimize(function, function.initial_point.copy())

        num_items = function.num_items
        u = np.array(parameters[:, :num_items], copy=True)
        v = np.array(parameters[:, num_items : num_items + function.num_users], copy=True)
        return u, v


def predict(u: np.ndarray, v: np.ndarray, users: Any, items: Any) -> np.ndarray:
    """Predicted ratings <U[:, item], V[:, user]> for paired index arrays."""
    users = np.asarray(users, dtype=np.int64)
    items = np.asarray(items, dtype=np.int64)
    return np.einsum("ij,ij->j", u[:, items], v[:, users])


def rmse(u: np.ndarray, v: np.ndarray, data: Any) -> float:
    """Root-mean-square error of the factorization over coordinate-list ratings."""
    coords = as_coordinate_list(data)
    if len(coords) == 0:
        return float("nan")
    errors = coords.ratings - predict(u, v, coords.users, coords.items)
    return float(np.sqrt(np.mean(errors * errors)))
