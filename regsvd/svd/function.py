"""Regularized squared-error objective for matrix factorization of ratings."""

from __future__ import annotations

import logging
from typing import Any, List, Tuple

import numpy as np

from ..data import CoordinateList, as_coordinate_list
from ..errors import InvalidInputError, check_positive_int
from ..utils import make_rng


logger = logging.getLogger(__name__)


class RegularizedSVDFunction:
    """Per-rating loss `(r - <q_i, p_u>)^2 + lambda * (|q_i|^2 + |p_u|^2)`.

    The parameter matrix has shape (rank, num_items + num_users). The first
    `num_items` columns are item vectors, the remaining `num_users` columns are
    user vectors. Each rating is one term of the objective, so the function can
    be handed to any optimizer that works on `DecomposableFunction`s.

    Parameters
    ----------
    data:
        Ratings in any form accepted by `as_coordinate_list`.
    rank:
        Latent dimensionality.
    lambda_:
        L2 regularization strength.
    rng:
        Generator or seed for the initial parameters, uniform on [0, 1/sqrt(rank)).
    """

    def __init__(
        self,
        data: Any,
        rank: int,
        lambda_: float = 0.02,
        *,
        rng: int | np.random.Generator | None = None,
    ) -> None:
        self.data: CoordinateList = as_coordinate_list(data)
        if len(self.data) == 0:
            raise InvalidInputError("rating data is empty")
        if not float(lambda_) >= 0.0:
            raise InvalidInputError(f"lambda must be non-negative, got {lambda_}")

        self.rank = check_positive_int(rank, "rank")
        self.lambda_ = float(lambda_)
        self.num_users = self.data.num_users
        self.num_items = self.data.num_items

        if self.rank > min(self.num_users, self.num_items):
            logger.warning(
                "rank=%d exceeds min(num_users=%d, num_items=%d)",
                self.rank,
                self.num_users,
                self.num_items,
            )

        generator = make_rng(rng)
        shape = (self.rank, self.num_items + self.num_users)
        self.initial_point = generator.random(shape) / np.sqrt(self.rank)

    @property
    def dataset(self) -> CoordinateList:
        return self.data

    def num_functions(self) -> int:
        return len(self.data)

    def _columns(self, i: int) -> Tuple[int, int, float]:
        n = len(self.data)
        if not 0 <= i < n:
            raise IndexError(f"sample index {i} out of range [0, {n})")
        item_col = int(self.data.items[i])
        user_col = self.num_items + int(self.data.users[i])
        return item_col, user_col, float(self.data.ratings[i])

    def evaluate(self, parameters: np.ndarray, i: int) -> float:
        """Loss of the i-th rating under `parameters`."""
        item_col, user_col, rating = self._columns(i)
        item_vec = parameters[:, item_col]
        user_vec = parameters[:, user_col]
        error = rating - float(np.dot(item_vec, user_vec))
        penalty = float(np.dot(item_vec, item_vec) + np.dot(user_vec, user_vec))
        return error * error + self.lambda_ * penalty

    def evaluate_all(self, parameters: np.ndarray) -> float:
        """Sum of `evaluate` over every rating."""
        item_vecs = parameters[:, self.data.items]
        user_vecs = parameters[:, self.num_items + self.data.users]
        errors = self.data.ratings - np.einsum("ij,ij->j", item_vecs, user_vecs)
        penalty = np.sum(item_vecs * item_vecs) + np.sum(user_vecs * user_vecs)
        return float(np.sum(errors * errors) + self.lambda_ * penalty)

    def sparse_gradient(self, parameters: np.ndarray, i: int) -> List[Tuple[int, np.ndarray]]:
        """Non-zero gradient columns of the i-th term as [(item_col, g), (user_col, g)]."""
        item_col, user_col, rating = self._columns(i)
        item_vec = parameters[:, item_col]
        user_vec = parameters[:, user_col]
        error = rating - float(np.dot(item_vec, user_vec))
        item_grad = 2.0 * (self.lambda_ * item_vec - error * user_vec)
        user_grad = 2.0 * (self.lambda_ * user_vec - error * item_vec)
        return [(item_col, item_grad), (user_col, user_grad)]

    def gradient(self, parameters: np.ndarray, i: int, gradient: np.ndarray) -> None:
        """Write the gradient of the i-th term into `gradient` (zeroed first)."""
        grads = self.sparse_gradient(parameters, i)
        gradient.fill(0.0)
        for col, grad_col in grads:
            gradient[:, col] = grad_col
