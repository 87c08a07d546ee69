"""Regularized SVD (L2-regularized matrix factorization) for rating data."""

from .data import CoordinateList, RatingRecord, as_coordinate_list
from .errors import InvalidInputError
from .svd import RegularizedSVD, RegularizedSVDFunction

__all__ = [
    "CoordinateList",
    "InvalidInputError",
    "RatingRecord",
    "RegularizedSVD",
    "RegularizedSVDFunction",
    "as_coordinate_list",
]
