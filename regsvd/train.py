from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

import numpy as np
import pandas as pd
from sklearn import model_selection
from sklearn.preprocessing import LabelEncoder

from .data import CoordinateList, as_coordinate_list, validate_ratings
from .svd import RegularizedSVD, predict


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RSVDTrainConfig:
    rank: int = 20
    iterations: int = 100000
    alpha: float = 0.01
    lambda_: float = 0.02
    shuffle: bool = False
    test_size: float = 0.1
    random_state: int = 42
    min_rating: float = 0.5
    max_rating: float = 5.0


@dataclass(frozen=True)
class RSVDArtifacts:
    item_factors_path: Path
    user_factors_path: Path
    user_classes_path: Path
    item_classes_path: Path
    meta_path: Path


def _clamped_rmse(
    u: np.ndarray,
    v: np.ndarray,
    coords: CoordinateList,
    train_coords: CoordinateList,
    *,
    min_rating: float,
    max_rating: float,
) -> float:
    # Rows whose user/item never appeared in training have no learned factors.
    known = np.isin(coords.users, train_coords.users) & np.isin(coords.items, train_coords.items)
    skipped = int((~known).sum())
    if skipped:
        logger.info("RSVD eval: skipping %d ratings with ids unseen during training", skipped)
    if not known.any():
        return float("nan")

    preds = predict(u, v, coords.users[known], coords.items[known])
    preds = np.clip(preds, float(min_rating), float(max_rating))
    errors = coords.ratings[known] - preds
    return float(np.sqrt(np.mean(errors * errors)))


def train_rsvd(
    ratings: pd.DataFrame,
    *,
    out_dir: Path,
    cfg: RSVDTrainConfig,
) -> RSVDArtifacts:
    """Train Regularized SVD on MovieLens-style ratings and persist the factors.

    Expected ratings columns: userId, movieId, rating
    """
    out_dir = Path(out_dir).resolve()
    out_dir.mkdir(parents=True, exist_ok=True)

    validate_ratings(ratings)
    df = ratings[["userId", "movieId", "rating"]].copy().reset_index(drop=True)
    df["rating"] = df["rating"].astype(float)

    # Label encoders to map raw ids => contiguous indices [0..n)
    le_user = LabelEncoder()
    le_item = LabelEncoder()
    df["user_idx"] = le_user.fit_transform(df["userId"].astype(np.int64).values)
    df["item_idx"] = le_item.fit_transform(df["movieId"].astype(np.int64).values)
    logger.info(
        "RSVD: users=%d items=%d ratings=%d",
        len(le_user.classes_),
        len(le_item.classes_),
        len(df),
    )

    if float(cfg.test_size) > 0.0 and len(df) > 1:
        df_train, df_test = model_selection.train_test_split(
            df,
            test_size=float(cfg.test_size),
            random_state=int(cfg.random_state),
        )
    else:
        df_train, df_test = df, df.iloc[0:0]

    train_coords = as_coordinate_list(df_train, user_col="user_idx", item_col="item_idx", rating_col="rating")
    test_coords = as_coordinate_list(df_test, user_col="user_idx", item_col="item_idx", rating_col="rating")

    rsvd = RegularizedSVD(
        iterations=int(cfg.iterations),
        alpha=float(cfg.alpha),
        lambda_=float(cfg.lambda_),
        shuffle=bool(cfg.shuffle),
        rng=int(cfg.random_state),
    )

    u, v = rsvd.apply(train_coords, cfg.rank)
    if not (np.isfinite(u).all() and np.isfinite(v).all()):
        logger.warning("RSVD produced non-finite factors; alpha=%g may be too large", float(cfg.alpha))

    train_rmse = _clamped_rmse(
        u, v, train_coords, train_coords, min_rating=cfg.min_rating, max_rating=cfg.max_rating
    )
    test_rmse = (
        _clamped_rmse(u, v, test_coords, train_coords, min_rating=cfg.min_rating, max_rating=cfg.max_rating)
        if len(test_coords)
        else float("nan")
    )
    logger.info("RSVD train_rmse=%.4f test_rmse=%.4f", train_rmse, test_rmse)

    # ----- Save artifacts -----
    item_factors_path = out_dir / "item_factors.npy"
    user_factors_path = out_dir / "user_factors.npy"
    user_classes_path = out_dir / "user_classes.npy"
    item_classes_path = out_dir / "item_classes.npy"
    meta_path = out_dir / "rsvd_meta.json"

    np.save(item_factors_path, u, allow_pickle=False)
    np.save(user_factors_path, v, allow_pickle=False)
    np.save(user_classes_path, le_user.classes_.astype(np.int64), allow_pickle=False)
    np.save(item_classes_path, le_item.classes_.astype(np.int64), allow_pickle=False)

    meta = {
        "n_users": int(v.shape[1]),
        "n_items": int(u.shape[1]),
        "rank": int(cfg.rank),
        "train_rmse": None if np.isnan(train_rmse) else train_rmse,
        "test_rmse": None if np.isnan(test_rmse) else test_rmse,
        "train_config": asdict(cfg),
    }
    meta_path.write_text(json.dumps(meta, indent=2, sort_keys=True) + "\n")

    return RSVDArtifacts(
        item_factors_path=item_factors_path,
        user_factors_path=user_factors_path,
        user_classes_path=user_classes_path,
        item_classes_path=item_classes_path,
        meta_path=meta_path,
    )
