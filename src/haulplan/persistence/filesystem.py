"""File-based object store for confirmed route plans."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..config import settings
from ..errors import NotFoundError, ValidationError


class FileStorage:
    """Path-addressed JSON blobs under the data root."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.plans_root = self.root / "route_plans"
        self.plans_root.mkdir(parents=True, exist_ok=True)

    def plan_path(self, account_id: str, plan_id: str) -> Path:
        for part in (account_id, plan_id):
            if not part or "/" in part or "\\" in part or part in (".", ".."):
                raise ValidationError(f"Invalid path segment: {part!r}")
        return self.plans_root / account_id / f"{plan_id}.json"

    def write_json(self, path: Path, data: Any, *, indent: int = 2) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=indent)

    def read_json(self, path: Path) -> Any:
        if not path.exists():
            raise NotFoundError(f"No stored object at {path.relative_to(self.root)}")
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def save_route_plan(self, account_id: str, plan_id: str, plan: dict[str, Any]) -> Path:
        path = self.plan_path(account_id, plan_id)
        self.write_json(path, plan)
        return path

    def load_route_plan(self, account_id: str, plan_id: str) -> dict[str, Any]:
        return self.read_json(self.plan_path(account_id, plan_id))
