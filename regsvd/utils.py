from __future__ import annotations

import logging
import os
import random
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class ReproducibilityConfig:
    seed: int = 42


def setup_logging(level: int | str = "INFO") -> None:
    """Configure stdlib logging with a consistent, project-wide format."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        # Avoid duplicate handlers if called multiple times (e.g., notebooks + CLI).
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def set_global_seed(cfg: ReproducibilityConfig) -> None:
    """Seed the global RNG sources (`random`, legacy `np.random`).

    The factorization code itself takes an explicit `np.random.Generator`; this is
    for anything downstream (sklearn splits without a random_state, notebooks).
    """
    random.seed(cfg.seed)
    np.random.seed(cfg.seed)
    os.environ["PYTHONHASHSEED"] = str(cfg.seed)


def make_rng(seed: int | np.random.Generator | None) -> np.random.Generator:
    """Return `seed` if it is already a Generator, else a new seeded Generator."""
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)
