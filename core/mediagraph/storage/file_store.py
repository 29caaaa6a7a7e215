"""
File Workflow Repository - workflows and meta values as JSON files.

Layout:
  {base_path}/
    workflows/
      {workflow_id}.json    # StoredWorkflow, camelCase keys
    meta/
      {key}.json            # any JSON value

Writes go through `atomic_write`; blocking file I/O runs in a worker thread.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from mediagraph.errors import InvalidWorkflowError
from mediagraph.schemas.workflow import StoredWorkflow
from mediagraph.utils.io import atomic_write

logger = logging.getLogger(__name__)


def validate_key(key: str) -> None:
    """
    Validate a storage key to prevent path traversal.

    Raises:
        ValueError: If key contains path traversal or dangerous patterns
    """
    if not key or key.strip() == "":
        raise ValueError("Key cannot be empty")

    if "/" in key or "\\" in key:
        raise ValueError(f"Invalid key format: path separators not allowed in '{key}'")

    if ".." in key or key.startswith("."):
        raise ValueError(f"Invalid key format: path traversal detected in '{key}'")

    if len(key) > 1 and key[1] == ":":
        raise ValueError(f"Invalid key format: absolute paths not allowed in '{key}'")

    if "\x00" in key:
        raise ValueError("Invalid key format: null bytes not allowed")

    dangerous_chars = {"<", ">", "|", "&", "$", "`", "'", '"'}
    if any(char in key for char in dangerous_chars):
        raise ValueError(f"Invalid key format: contains dangerous characters in '{key}'")


class FileWorkflowRepository:
    def __init__(self, base_path: str | Path):
        """
        Args:
            base_path: Root directory (e.g. ~/.mediagraph/workflows)
        """
        self.base_path = Path(base_path)
        self.workflows_dir = self.base_path / "workflows"
        self.meta_dir = self.base_path / "meta"

    def _workflow_path(self, workflow_id: str) -> Path:
        validate_key(workflow_id)
        return self.workflows_dir / f"{workflow_id}.json"

    def _meta_path(self, key: str) -> Path:
        validate_key(key)
        return self.meta_dir / f"{key}.json"

    # === WORKFLOWS ===

    async def list_workflows(self) -> list[StoredWorkflow]:
        """All readable workflows. Corrupt files are logged and skipped."""

        def _scan() -> list[StoredWorkflow]:
            workflows: list[StoredWorkflow] = []
            if not self.workflows_dir.exists():
                return workflows
            for path in sorted(self.workflows_dir.glob("*.json")):
                try:
                    workflows.append(StoredWorkflow.model_validate_json(path.read_text(encoding="utf-8")))
                except (OSError, ValidationError) as e:
                    logger.warning(f"Failed to load {path}: {e}")
            return workflows

        return await asyncio.to_thread(_scan)

    async def load_workflow(self, workflow_id: str) -> StoredWorkflow | None:
        """
        Raises:
            InvalidWorkflowError: the file exists but does not parse
        """
        path = self._workflow_path(workflow_id)

        def _read() -> StoredWorkflow | None:
            if not path.exists():
                return None
            try:
                return StoredWorkflow.model_validate_json(path.read_text(encoding="utf-8"))
            except ValidationError as e:
                raise InvalidWorkflowError(f"Workflow file {path.name} is invalid: {e}") from e

        return await asyncio.to_thread(_read)

    async def save_workflow(self, workflow: StoredWorkflow) -> None:
        path = self._workflow_path(workflow.id)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            with atomic_write(path) as f:
                f.write(workflow.to_json())

        await asyncio.to_thread(_write)
        logger.debug(f"Wrote {path}")

    async def delete_workflow(self, workflow_id: str) -> bool:
        path = self._workflow_path(workflow_id)

        def _delete() -> bool:
            if not path.exists():
                return False
            path.unlink()
            return True

        deleted = await asyncio.to_thread(_delete)
        if deleted:
            logger.info(f"Deleted workflow {workflow_id}")
        return deleted

    # === META ===

    async def get_meta(self, key: str) -> Any | None:
        path = self._meta_path(key)

        def _read() -> Any | None:
            if not path.exists():
                return None
            try:
                return json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                logger.warning(f"Ignoring unreadable meta value {key}: {e}")
                return None

        return await asyncio.to_thread(_read)

    async def set_meta(self, key: str, value: Any) -> None:
        path = self._meta_path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            with atomic_write(path) as f:
                json.dump(value, f, indent=2)

        await asyncio.to_thread(_write)
