from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, List, Union


def sha256_bytes(data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


class ArtifactStore:
    """Per-input artifact tree: ``<base>/<analysis_id>/runs/<run_id>/...``."""

    def __init__(self, base_dir: str | Path, analysis_id: str, run_id: str | None = None) -> None:
        self.base_dir = Path(base_dir)
        self.analysis_id = analysis_id
        self.run_id = run_id
        self.base_root = self.base_dir / analysis_id
        self.root = self.base_root / "runs" / run_id if run_id else self.base_root

    @staticmethod
    def compute_analysis_id(content: Union[bytes, str]) -> str:
        return sha256_bytes(content)

    @classmethod
    def from_content(
        cls,
        base_dir: str | Path,
        content: Union[bytes, str],
        run_id: str | None = None,
    ) -> "ArtifactStore":
        return cls(base_dir, cls.compute_analysis_id(content), run_id=run_id)

    def ensure_dir(self, *parts: str) -> Path:
        path = self.root.joinpath(*parts)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def path(self, *parts: str) -> Path:
        return self.root.joinpath(*parts)

    def relpath(self, rel_path: str) -> str:
        if self.run_id:
            return str(Path("runs") / self.run_id / rel_path)
        return rel_path

    def write_json(self, rel_path: str, data: Any) -> Path:
        path = self.path(rel_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, ensure_ascii=True)
        return path

    def read_json(self, rel_path: str) -> Any:
        path = self.path(rel_path)
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def run_ids(self) -> List[str]:
        """Run directories for this analysis, oldest first by modification time."""
        runs_dir = self.base_root / "runs"
        if not runs_dir.exists():
            return []
        runs = [p for p in runs_dir.iterdir() if p.is_dir()]
        runs.sort(key=lambda p: p.stat().st_mtime)
        return [p.name for p in runs]
