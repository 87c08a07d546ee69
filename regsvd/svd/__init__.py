"""Regularized SVD factorization of coordinate-list ratings."""

from .function import RegularizedSVDFunction
from .regularized_svd import RegularizedSVD, predict, rmse

__all__ = ["RegularizedSVD", "RegularizedSVDFunction", "predict", "rmse"]
