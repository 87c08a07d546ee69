from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ProjectPaths:
    raw_dir: Path
    artifacts_dir: Path
    rsvd_dir: Path

    @classmethod
    def from_repo_root(
        cls,
        repo_root: Path,
        *,
        raw_dir: Path | str = "data/raw",
        artifacts_dir: Path | str = "artifacts",
    ) -> "ProjectPaths":
        def _resolve(p: Path | str) -> Path:
            p_path = Path(p) if isinstance(p, str) else p
            if not p_path.is_absolute():
                p_path = repo_root / p_path
            return p_path.resolve()

        artifacts_dir_p = _resolve(artifacts_dir)
        return cls(
            raw_dir=_resolve(raw_dir),
            artifacts_dir=artifacts_dir_p,
            rsvd_dir=artifacts_dir_p / "rsvd",
        )


def get_repo_root() -> Path:
    """Return the nearest directory at or above the cwd holding `config.yaml` or `.git`."""
    start = Path.cwd().resolve()
    for candidate in (start, *start.parents):
        if (candidate / "config.yaml").is_file() or (candidate / ".git").exists():
            return candidate

    raise FileNotFoundError("Could not locate repo root (expected `config.yaml` or `.git`).")
