from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, NamedTuple, Tuple

import numpy as np
import pandas as pd
from scipy import sparse

from .errors import InvalidInputError


class RatingRecord(NamedTuple):
    user: int
    item: int
    rating: float


@dataclass(frozen=True)
class CoordinateList:
    """Rating observations as three parallel arrays (one entry per rating)."""

    users: np.ndarray
    items: np.ndarray
    ratings: np.ndarray

    def __len__(self) -> int:
        return int(self.ratings.shape[0])

    def __getitem__(self, i: int) -> RatingRecord:
        return RatingRecord(int(self.users[i]), int(self.items[i]), float(self.ratings[i]))

    @property
    def num_users(self) -> int:
        return int(self.users.max()) + 1 if len(self) else 0

    @property
    def num_items(self) -> int:
        return int(self.items.max()) + 1 if len(self) else 0

    def to_matrix(self) -> np.ndarray:
        """Stack into a (3, N) array: row 0 users, row 1 items, row 2 ratings."""
        return np.vstack([self.users.astype(np.float64), self.items.astype(np.float64), self.ratings])


REQUIRED_RATING_COLUMNS: Tuple[str, ...] = ("userId", "movieId", "rating")


def _as_index_array(values: Any, name: str) -> np.ndarray:
    arr = np.asarray(values)
    if arr.size and not np.issubdtype(arr.dtype, np.integer):
        arr_f = arr.astype(np.float64)
        if not np.all(np.isfinite(arr_f)) or not np.all(arr_f == np.floor(arr_f)):
            raise InvalidInputError(f"{name} indices must be integral")
        arr = arr_f
    arr = arr.astype(np.int64)
    if arr.size and int(arr.min()) < 0:
        raise InvalidInputError(f"{name} indices must be non-negative")
    return arr


def _from_arrays(users: Any, items: Any, ratings: Any) -> CoordinateList:
    u = _as_index_array(users, "user")
    i = _as_index_array(items, "item")
    r = np.asarray(ratings, dtype=np.float64)
    if not (u.ndim == i.ndim == r.ndim == 1) or not (u.shape == i.shape == r.shape):
        raise InvalidInputError(
            f"users/items/ratings must be 1-D and equal length, got {u.shape}, {i.shape}, {r.shape}"
        )
    if r.size and not np.all(np.isfinite(r)):
        raise InvalidInputError("ratings contain NaN or infinite values")
    return CoordinateList(users=u, items=i, ratings=r)


def as_coordinate_list(
    data: Any,
    *,
    user_col: str = "user",
    item_col: str = "item",
    rating_col: str = "rating",
) -> CoordinateList:
    """Coerce rating data into a `CoordinateList`.

    Accepted inputs
    ---------------
    - `CoordinateList` (returned as is)
    - pandas DataFrame with `user_col`, `item_col`, `rating_col`
    - scipy.sparse matrix: rows are users, columns are items; only stored entries count
    - numpy array of shape (3, N): row 0 users, row 1 items, row 2 ratings
    - any other sequence of (user, item, rating) triples, e.g. a list of `RatingRecord`
    """
    if isinstance(data, CoordinateList):
        return data

    if isinstance(data, pd.DataFrame):
        missing = [c for c in (user_col, item_col, rating_col) if c not in data.columns]
        if missing:
            raise InvalidInputError(f"ratings DataFrame missing columns: {missing}")
        return _from_arrays(data[user_col].to_numpy(), data[item_col].to_numpy(), data[rating_col].to_numpy())

    if sparse.issparse(data):
        coo = sparse.coo_matrix(data)
        return _from_arrays(coo.row, coo.col, coo.data)

    if isinstance(data, np.ndarray):
        if data.ndim != 2 or data.shape[0] != 3:
            raise InvalidInputError(f"expected a (3, N) coordinate-list array, got shape {data.shape}")
        return _from_arrays(data[0], data[1], data[2])

    records = list(data)
    if not records:
        return _from_arrays([], [], [])
    try:
        users, items, ratings = zip(*records)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError("expected a sequence of (user, item, rating) triples") from exc
    return _from_arrays(users, items, ratings)


def load_ratings(path: Path) -> pd.DataFrame:
    """Load a MovieLens-style `ratings.csv` (userId, movieId, rating[, timestamp])."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Ratings file not found: {path}")

    ratings = pd.read_csv(
        path,
        dtype={"userId": "int64", "movieId": "int64", "rating": "float64"},
    )
    validate_ratings(ratings)
    return ratings


def validate_ratings(ratings: pd.DataFrame) -> None:
    """Validate that required columns exist and ratings are usable for training."""
    missing = [c for c in REQUIRED_RATING_COLUMNS if c not in ratings.columns]
    if missing:
        raise ValueError(f"ratings.csv missing columns: {missing}")

    if ratings.empty:
        raise ValueError("ratings.csv contains no rows")

    if ratings[list(REQUIRED_RATING_COLUMNS)].isna().any().any():
        raise ValueError("ratings.csv contains missing values in userId/movieId/rating")

    if not np.isfinite(ratings["rating"].to_numpy(dtype=np.float64)).all():
        raise ValueError("ratings.csv contains non-finite rating values")
