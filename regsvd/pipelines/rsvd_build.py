from __future__ import annotations

import argparse
import logging
from pathlib import Path

import yaml

from ..data import load_ratings
from ..paths import ProjectPaths, get_repo_root
from ..train import RSVDArtifacts, RSVDTrainConfig, train_rsvd
from ..utils import ReproducibilityConfig, set_global_seed, setup_logging


logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Train Regularized SVD factors from ratings.csv.")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML.")
    p.add_argument("--out-dir", type=Path, default=None, help="Output directory for artifacts")
    p.add_argument("--rank", type=int, default=None, help="Override latent rank")
    p.add_argument("--iterations", type=int, default=None, help="Override number of SGD steps")
    p.add_argument("--alpha", type=float, default=None, help="Override learning rate")
    p.add_argument("--lambda", dest="lambda_", type=float, default=None, help="Override regularization")
    p.add_argument(
        "--shuffle",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Shuffle ratings on every pass (overrides config)",
    )
    p.add_argument("--log-level", type=str, default="INFO")
    return p


def _pick(override, section: dict, key: str, default):
    return override if override is not None else section.get(key, default)


def run_rsvd_build(argv: list[str] | None = None) -> RSVDArtifacts:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)
    repo_root = get_repo_root()
    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = (repo_root / config_path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    cfg_yaml = yaml.safe_load(config_path.read_text())
    if not isinstance(cfg_yaml, dict):
        raise ValueError("config.yaml must be a mapping")

    dataset_cfg = cfg_yaml.get("dataset", {}) if isinstance(cfg_yaml.get("dataset"), dict) else {}
    paths = ProjectPaths.from_repo_root(
        repo_root,
        raw_dir=Path(str(dataset_cfg.get("raw_dir", "data/raw"))),
        artifacts_dir=Path(str(dataset_cfg.get("artifacts_dir", "artifacts"))),
    )

    rsvd_raw = cfg_yaml.get("rsvd", {}) if isinstance(cfg_yaml.get("rsvd"), dict) else {}
    cfg = RSVDTrainConfig(
        rank=int(_pick(args.rank, rsvd_raw, "rank", 20)),
        iterations=int(_pick(args.iterations, rsvd_raw, "iterations", 100000)),
        alpha=float(_pick(args.alpha, rsvd_raw, "alpha", 0.01)),
        lambda_=float(_pick(args.lambda_, rsvd_raw, "lambda", 0.02)),
        shuffle=bool(_pick(args.shuffle, rsvd_raw, "shuffle", False)),
        test_size=float(rsvd_raw.get("test_size", 0.1)),
        random_state=int(rsvd_raw.get("random_state", 42)),
        min_rating=float(rsvd_raw.get("min_rating", 0.5)),
        max_rating=float(rsvd_raw.get("max_rating", 5.0)),
    )
    set_global_seed(ReproducibilityConfig(seed=cfg.random_state))

    out_dir = Path(args.out_dir) if args.out_dir is not None else paths.rsvd_dir
    if not out_dir.is_absolute():
        out_dir = (repo_root / out_dir).resolve()

    ratings_path = paths.raw_dir / str(dataset_cfg.get("ratings_file", "ratings.csv"))
    logger.info("Loading ratings from %s", ratings_path)
    ratings = load_ratings(ratings_path)

    logger.info("Building RSVD artifacts to %s", out_dir)
    return train_rsvd(ratings, out_dir=out_dir, cfg=cfg)


def main(argv: list[str] | None = None) -> None:
    run_rsvd_build(argv)


if __name__ == "__main__":
    main()
