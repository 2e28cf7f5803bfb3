"""Project initializer: request, download and unpack a generated project.

Talks to a start.spring.io compatible generator service. The target
directory ``projects_dir/app_name`` is never overwritten: an existing
non-empty directory, or a lock held by another live run, fails with
``PathConflict`` before anything is written. The archive is unpacked into a
staging directory next to the target and moved into place only once it is
known to be complete.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
import time
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import httpx
from pydantic import BaseModel, ConfigDict

from spring_init.config import ProjectConfig
from spring_init.errors import ExtractionError, GenerationError, PathConflict
from spring_init.resolution.models import ResolvedDependencySet
from spring_init.utils import is_non_empty_dir, print_warning

STARTER_PATH = "/starter.zip"
STALE_LOCK_SECONDS = 60


class ProjectHandle(BaseModel):
    """A freshly generated project on disk."""

    model_config = ConfigDict(frozen=True)

    root: Path
    dependencies: ResolvedDependencySet


def _lock_is_stale(lock_path: Path) -> bool:
    """Return ``True`` if the run that wrote *lock_path* is gone.

    The lock holds the owner's pid. A lock without a readable pid is only
    treated as stale once it is older than ``STALE_LOCK_SECONDS``, since its
    owner may not have written the pid yet.
    """
    try:
        content = lock_path.read_text(encoding="utf-8").strip()
        age = time.time() - lock_path.stat().st_mtime
    except FileNotFoundError:
        return True
    except OSError:
        return False
    try:
        pid = int(content)
    except ValueError:
        return age > STALE_LOCK_SECONDS
    if pid <= 0:
        return age > STALE_LOCK_SECONDS
    if os.name != "posix":
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    except PermissionError:
        return False
    return False


def _create_lock(lock_path: Path) -> int:
    return os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)


@contextmanager
def project_lock(lock_path: Path, target: Path) -> Iterator[None]:
    """Hold an exclusive lock file for the duration of one ``init``.

    A lock left behind by a run that was killed is removed and taken over.

    Raises:
        PathConflict: If another live run already holds the lock.
    """
    try:
        fd = _create_lock(lock_path)
    except FileExistsError as exc:
        if not _lock_is_stale(lock_path):
            raise PathConflict(
                target, f"another spring-init run is working on it (lock file {lock_path})"
            ) from exc
        print_warning(f"  Removing stale lock file {lock_path}")
        lock_path.unlink(missing_ok=True)
        try:
            fd = _create_lock(lock_path)
        except FileExistsError as retry_exc:
            raise PathConflict(
                target, f"another spring-init run is working on it (lock file {lock_path})"
            ) from retry_exc
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(str(os.getpid()))
        yield
    finally:
        lock_path.unlink(missing_ok=True)


class ProjectInitializer:
    """Generates a project skeleton into ``config.app_dir``."""

    def __init__(self, config: ProjectConfig, timeout: int | None = None) -> None:
        self.config = config
        self.base_url = config.generator.url.rstrip("/")
        self.timeout = timeout if timeout is not None else config.generator.timeout

    # -- Request -----------------------------------------------------------

    def build_params(self, deps: ResolvedDependencySet) -> dict[str, Any]:
        """Query parameters for ``/starter.zip``."""
        cfg = self.config
        return {
            "type": "maven-project",
            "language": "java",
            "bootVersion": cfg.boot_version,
            "baseDir": cfg.app_name,
            "groupId": cfg.package_name,
            "artifactId": cfg.app_name,
            "name": cfg.app_name,
            "version": cfg.app_version,
            "packageName": cfg.package_name,
            "packaging": "jar",
            "javaVersion": cfg.java_version,
            "dependencies": deps.as_param(),
        }

    def check_target(self) -> Path:
        """Raise ``PathConflict`` if the target directory holds anything."""
        target = self.config.app_dir
        if is_non_empty_dir(target):
            raise PathConflict(target, "already exists and is not empty")
        return target

    # -- Public API --------------------------------------------------------

    async def initialize(self, deps: ResolvedDependencySet) -> ProjectHandle:
        """Generate the project and unpack it into ``projects_dir/app_name``.

        Raises:
            PathConflict: Target exists and is non-empty, or is locked.
            GenerationError: The generator could not be reached or refused.
            ExtractionError: The archive is corrupt, unsafe, or incomplete.
        """
        target = self.check_target()
        self.config.projects_dir.mkdir(parents=True, exist_ok=True)

        with project_lock(self.config.lock_path, target):
            self.check_target()
            archive = await self._download(deps)
            try:
                deadline = time.monotonic() + self.timeout
                await asyncio.to_thread(self._extract, archive, target, deadline)
            finally:
                archive.unlink(missing_ok=True)

        return ProjectHandle(root=target, dependencies=deps)

    # -- Internals ---------------------------------------------------------

    async def _download(self, deps: ResolvedDependencySet) -> Path:
        """Fetch the generated archive into a temporary file."""
        url = self.base_url + STARTER_PATH
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                follow_redirects=True,
            ) as client:
                response = await client.get(url, params=self.build_params(deps))
                response.raise_for_status()
                content = response.content
        except httpx.TimeoutException as exc:
            raise GenerationError(f"Generator request timed out after {self.timeout}s") from exc
        except httpx.HTTPStatusError as exc:
            raise GenerationError(
                f"Generator returned HTTP {exc.response.status_code}: {exc.response.text[:500]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"Cannot reach the generator at {self.base_url}: {exc}") from exc

        if not content:
            raise GenerationError("Generator returned an empty archive")

        fd, name = tempfile.mkstemp(prefix=f"{self.config.app_name}-", suffix=".zip")
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
        return Path(name)

    def _extract(self, archive: Path, target: Path, deadline: float) -> None:
        """Unpack *archive* into a staging directory, then move it to *target*."""
        if not zipfile.is_zipfile(archive):
            raise ExtractionError("Downloaded file is not a zip archive")

        staging = Path(tempfile.mkdtemp(prefix=f".{self.config.app_name}.staging-",
                                        dir=self.config.projects_dir))
        try:
            staging_root = staging.resolve()
            try:
                with zipfile.ZipFile(archive) as zf:
                    corrupt = zf.testzip()
                    if corrupt is not None:
                        raise ExtractionError(f"Archive member {corrupt!r} is corrupt")
                    for info in zf.infolist():
                        if time.monotonic() > deadline:
                            raise ExtractionError(f"Extraction timed out after {self.timeout}s")
                        destination = (staging / info.filename).resolve()
                        if not destination.is_relative_to(staging_root):
                            raise ExtractionError(
                                f"Archive member {info.filename!r} escapes the project directory"
                            )
                        zf.extract(info, staging)
                        mode = (info.external_attr >> 16) & 0o777
                        if mode and not info.is_dir():
                            os.chmod(destination, mode)
            except zipfile.BadZipFile as exc:
                raise ExtractionError(f"Corrupt archive: {exc}") from exc

            project = staging / self.config.app_name
            if not project.is_dir():
                project = staging
            if not (project / "pom.xml").is_file():
                raise ExtractionError("Archive does not contain a pom.xml")

            if target.exists():
                if is_non_empty_dir(target):
                    raise PathConflict(target, "already exists and is not empty")
                target.rmdir()
            try:
                os.replace(project, target)
            except OSError as exc:
                raise ExtractionError(f"Could not move project into {target}: {exc}") from exc
        finally:
            shutil.rmtree(staging, ignore_errors=True)
