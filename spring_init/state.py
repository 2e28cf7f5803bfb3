"""Project state persistence.

One JSON record per generated project, stored inside the project at
``.spring-init/state.json``. It is written only after generation and plugin
sync have both succeeded, so a project with a state file is always complete.
"""

from __future__ import annotations

import shutil
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from spring_init.config import PluginSpec, ProjectConfig
from spring_init.errors import NothingToReset, StateNotFound, StateWriteError
from spring_init.scaffolder.initializer import ProjectHandle
from spring_init.utils import save_json

STATE_DIR = ".spring-init"
STATE_FILE = "state.json"


def state_path(project_root: str | Path) -> Path:
    """Location of the state record for *project_root*."""
    return Path(project_root) / STATE_DIR / STATE_FILE


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectState(BaseModel):
    """Persisted record of what was generated and applied."""

    app_name: str
    project_root: Path
    dependencies: list[str] = Field(default_factory=list)
    plugins: list[PluginSpec] = Field(default_factory=list)
    boot_version: str = ""
    java_version: str = ""
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)


class ProjectStateManager:
    """Reads, writes and clears ``ProjectState`` records."""

    def exists(self, project_root: str | Path) -> bool:
        return state_path(project_root).is_file()

    async def record(
        self,
        handle: ProjectHandle,
        plugins: list[PluginSpec],
        config: ProjectConfig,
    ) -> ProjectState:
        """Write the state record for *handle*.

        Plugins already recorded by an earlier run are kept; new ones are
        appended by identity. ``created_at`` survives re-recording.

        Raises:
            StateWriteError: If the record cannot be written.
        """
        created_at = _now()
        applied: list[PluginSpec] = []
        if self.exists(handle.root):
            previous = self.load(handle.root)
            created_at = previous.created_at
            applied.extend(previous.plugins)

        known = {p.key for p in applied}
        for plugin in plugins:
            if plugin.key not in known:
                applied.append(plugin)
                known.add(plugin.key)

        state = ProjectState(
            app_name=config.app_name,
            project_root=handle.root.resolve(),
            dependencies=list(handle.dependencies),
            plugins=applied,
            boot_version=config.boot_version,
            java_version=config.java_version,
            created_at=created_at,
            updated_at=_now(),
        )
        try:
            await save_json(state.model_dump(mode="json"), state_path(handle.root))
        except OSError as exc:
            raise StateWriteError(f"Could not write project state for {handle.root}: {exc}") from exc
        return state

    def load(self, project_root: str | Path) -> ProjectState:
        """Load the state record for *project_root*.

        Raises:
            StateNotFound: If there is no record or it cannot be read.
        """
        path = state_path(project_root)
        if not path.is_file():
            raise StateNotFound(f"No spring-init project state at {Path(project_root)}")
        try:
            return ProjectState.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            raise StateNotFound(f"Project state at {path} is unreadable: {exc}") from exc

    def clear(self, project_root: str | Path) -> Path:
        """Delete the state record and the whole project directory.

        Raises:
            NothingToReset: If no state is recorded; nothing is touched.
        """
        root = Path(project_root)
        if not self.exists(root):
            raise NothingToReset(f"No spring-init project state at {root}; nothing to reset")
        state_path(root).unlink()
        shutil.rmtree(root)
        return root
