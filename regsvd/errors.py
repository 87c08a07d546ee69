from __future__ import annotations

from typing import Any

import numpy as np


class InvalidInputError(ValueError):
    """Raised when rating data or hyperparameters cannot be used for training."""


def check_positive_int(value: Any, name: str) -> int:
    """Return `value` as an int, rejecting bools, fractional values and values <= 0."""
    if isinstance(value, (bool, np.bool_)):
        raise InvalidInputError(f"{name} must be a positive integer, got {value!r}")
    try:
        as_int = int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidInputError(f"{name} must be a positive integer, got {value!r}") from exc
    if as_int != value or as_int <= 0:
        raise InvalidInputError(f"{name} must be a positive integer, got {value!r}")
    return as_int
