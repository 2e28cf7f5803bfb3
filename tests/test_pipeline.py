"""Tests for the spring-init orchestrator and CLI (spring_init.pipeline).

Tests cover:
- Dependency resolution with and without a PRD
- init end to end against a mocked generator (plugins added, state recorded)
- init failure modes: occupied target, unknown include, AI failure, bad pom.xml,
  failed writes
- build / run with a mocked run_command
- info / deps / reset
- main(): exit codes and error reporting
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from spring_init.config import ProjectConfig
from spring_init.errors import (
    BuildCommandError,
    DescriptorParseError,
    NothingToReset,
    PathConflict,
    StateNotFound,
    StateWriteError,
    SuggestionServiceError,
    UnknownDependency,
)
from spring_init.pipeline import SpringInit, build_parser, main
from spring_init.state import ProjectState, state_path


AI_REPLY = "web, postgre-sql, data-jpa, nonsense"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app(project_config, catalog, mock_ai) -> SpringInit:
    return SpringInit(project_config, catalog, mock_ai(AI_REPLY))


@pytest.fixture
def generated(project_config, sample_pom) -> Path:
    """A project as ``init`` leaves it, minus the configured plugins."""
    root = project_config.app_dir
    root.mkdir(parents=True)
    (root / "pom.xml").write_text(sample_pom, encoding="utf-8")
    state = ProjectState(app_name="demo", project_root=root, dependencies=["web"])
    path = state_path(root)
    path.parent.mkdir()
    path.write_text(state.model_dump_json(indent=2), encoding="utf-8")
    return root


# ---------------------------------------------------------------------------
# Dependency resolution
# ---------------------------------------------------------------------------


class TestResolveDependencies:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_with_prd(self, app):
        deps = await app.resolve_dependencies("An order service on Postgres", ["security"])
        assert deps.ids == ("web", "postgresql", "data-jpa", "security")
        app.client.complete.assert_awaited_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_without_prd_uses_web(self, app):
        deps = await app.resolve_dependencies(None, [])
        assert deps.ids == ("web",)
        app.client.complete.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_config_includes_come_first(self, config_data, catalog, mock_ai):
        config_data["include_deps"] = ["actuator"]
        app = SpringInit(ProjectConfig.model_validate(config_data), catalog, mock_ai(AI_REPLY))
        deps = await app.resolve_dependencies(None, ["validation", "actuator"])
        assert deps.ids == ("web", "actuator", "validation")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_catalog_required(self, project_config, mock_ai):
        app = SpringInit(project_config, None, mock_ai(AI_REPLY))
        with pytest.raises(RuntimeError):
            await app.resolve_dependencies(None, [])


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


class TestInit:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_end_to_end(self, app, project_config, mock_http_client, make_starter_zip):
        client = mock_http_client(content=make_starter_zip())
        with patch("httpx.AsyncClient", return_value=client):
            state = await app.init("An order service on Postgres", ["security"])

        params = client.get.call_args[1]["params"]
        assert params["dependencies"] == "web,postgresql,data-jpa,security"

        pom = (project_config.app_dir / "pom.xml").read_text(encoding="utf-8")
        assert "<artifactId>jacoco-maven-plugin</artifactId>" in pom

        assert state.dependencies == ["web", "postgresql", "data-jpa", "security"]
        assert [p.artifact_id for p in state.plugins] == ["jacoco-maven-plugin"]
        recorded = json.loads(state_path(project_config.app_dir).read_text(encoding="utf-8"))
        assert recorded["dependencies"] == state.dependencies

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_without_prd(self, app, mock_http_client, make_starter_zip):
        client = mock_http_client(content=make_starter_zip())
        with patch("httpx.AsyncClient", return_value=client):
            state = await app.init()
        assert state.dependencies == ["web"]
        app.client.complete.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_occupied_target_fails_before_ai_call(self, app, project_config):
        project_config.app_dir.mkdir(parents=True)
        (project_config.app_dir / "notes.txt").write_text("keep", encoding="utf-8")

        with pytest.raises(PathConflict):
            await app.init("PRD", [])

        app.client.complete.assert_not_called()
        assert [p.name for p in project_config.app_dir.iterdir()] == ["notes.txt"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_include_generates_nothing(self, app, project_config, mock_http_client):
        client = mock_http_client(content=b"unused")
        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(UnknownDependency):
                await app.init(None, ["spring-magic"])
        client.get.assert_not_called()
        assert not project_config.app_dir.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ai_failure_generates_nothing(self, project_config, catalog, mock_ai):
        app = SpringInit(project_config, catalog, mock_ai(success=False, error="Cannot connect"))
        with pytest.raises(SuggestionServiceError):
            await app.init("PRD", [])
        assert not project_config.app_dir.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bad_descriptor_removes_project(
        self, app, project_config, mock_http_client, make_starter_zip
    ):
        archive = make_starter_zip(pom="<project><modelVersion>4.0.0</modelVersion></project>")
        client = mock_http_client(content=archive)
        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(DescriptorParseError):
                await app.init(None, [])
        assert not project_config.app_dir.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_descriptor_write_failure_removes_project(
        self, app, project_config, mock_http_client, make_starter_zip
    ):
        client = mock_http_client(content=make_starter_zip())
        with patch("httpx.AsyncClient", return_value=client), patch(
            "spring_init.scaffolder.build_sync.write_text_atomic",
            side_effect=OSError(28, "No space left on device"),
        ):
            with pytest.raises(DescriptorParseError, match="Could not write"):
                await app.init(None, [])

        assert not project_config.app_dir.exists()
        assert app.initializer.check_target() == project_config.app_dir

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_state_write_failure_removes_project(
        self, app, project_config, mock_http_client, make_starter_zip
    ):
        client = mock_http_client(content=make_starter_zip())
        with patch("httpx.AsyncClient", return_value=client), patch(
            "spring_init.state.save_json",
            new=AsyncMock(side_effect=OSError(28, "No space left on device")),
        ):
            with pytest.raises(StateWriteError):
                await app.init(None, [])

        assert not project_config.app_dir.exists()


# ---------------------------------------------------------------------------
# build / run
# ---------------------------------------------------------------------------


class TestBuild:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sync_only(self, app, generated):
        with patch("spring_init.pipeline.run_command", new=AsyncMock()) as run:
            state = await app.build(sync_only=True)

        run.assert_not_called()
        assert "jacoco-maven-plugin" in (generated / "pom.xml").read_text(encoding="utf-8")
        assert [p.artifact_id for p in state.plugins] == ["jacoco-maven-plugin"]
        assert state.dependencies == ["web"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_runs_maven(self, app, generated):
        with patch(
            "spring_init.pipeline.run_command", new=AsyncMock(return_value=(0, "", ""))
        ) as run:
            await app.build()

        assert run.call_args[0][0] == ["mvn", "package"]
        assert run.call_args[1]["cwd"] == generated

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_prefers_maven_wrapper(self, app, generated):
        wrapper = generated / "mvnw"
        wrapper.write_text("#!/bin/sh\n", encoding="utf-8")
        wrapper.chmod(0o755)
        with patch(
            "spring_init.pipeline.run_command", new=AsyncMock(return_value=(0, "", ""))
        ) as run:
            await app.build()
        assert run.call_args[0][0] == [str(wrapper), "package"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_maven_failure(self, app, generated):
        with patch(
            "spring_init.pipeline.run_command", new=AsyncMock(return_value=(1, "", "BUILD FAILURE"))
        ):
            with pytest.raises(BuildCommandError) as exc_info:
                await app.build()
        assert exc_info.value.returncode == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_without_state(self, app):
        with pytest.raises(StateNotFound):
            await app.build()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_run_builds_then_starts_jar(self, app, generated, project_config):
        run = AsyncMock(side_effect=[(0, "", ""), (0, "", "")])
        with patch("spring_init.pipeline.run_command", new=run):
            assert await app.run() == 0

        assert run.await_count == 2
        assert run.call_args_list[1][0][0] == ["java", "-jar", str(project_config.jar_path)]
        assert run.call_args_list[1][1]["timeout"] is None


# ---------------------------------------------------------------------------
# info / deps / suggest-deps / reset
# ---------------------------------------------------------------------------


class TestOtherCommands:
    @pytest.mark.unit
    def test_info_without_project(self, app, capsys):
        assert app.info() is None
        assert "APP_NAME" in capsys.readouterr().out

    @pytest.mark.unit
    def test_info_with_project(self, app, generated):
        state = app.info()
        assert state is not None
        assert state.dependencies == ["web"]

    @pytest.mark.unit
    def test_deps_lists_catalog(self, app, capsys):
        app.deps()
        out = capsys.readouterr().out
        assert "data-jpa" in out
        assert "postgresql" in out

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_suggest_deps(self, app, capsys, project_config):
        deps = await app.suggest_deps("An order service")
        assert deps.ids == ("web", "postgresql", "data-jpa")
        assert "--include web,postgresql,data-jpa" in capsys.readouterr().out
        assert not project_config.app_dir.exists()

    @pytest.mark.unit
    def test_reset(self, app, generated):
        assert app.reset() == generated
        assert not generated.exists()

    @pytest.mark.unit
    def test_reset_without_state(self, app):
        with pytest.raises(NothingToReset):
            app.reset()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


class TestParser:
    @pytest.mark.unit
    def test_init_options(self):
        args = build_parser().parse_args(["init", "--prd", "prd.md", "--include", "web,security"])
        assert args.command == "init"
        assert args.prd == "prd.md"
        assert args.include == "web,security"
        assert args.config == "config.json"

    @pytest.mark.unit
    def test_suggest_requires_prd(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["suggest-deps"])

    @pytest.mark.unit
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    @pytest.mark.unit
    def test_missing_config(self, tmp_path, capsys):
        code = main(["--config", str(tmp_path / "missing.json"), "info"])
        assert code == 1
        assert "Error [ConfigError]" in capsys.readouterr().err

    @pytest.mark.unit
    def test_info(self, config_file):
        assert main(["--config", str(config_file), "info"]) == 0

    @pytest.mark.unit
    def test_deps(self, config_file, capsys):
        assert main(["--config", str(config_file), "deps"]) == 0
        assert "security" in capsys.readouterr().out

    @pytest.mark.unit
    def test_reset_nothing_is_not_fatal(self, config_file, capsys):
        assert main(["--config", str(config_file), "reset"]) == 0
        assert "NothingToReset" in capsys.readouterr().err

    @pytest.mark.unit
    def test_unknown_include(self, config_file, capsys, project_config):
        code = main(["--config", str(config_file), "init", "--include", "spring-magic"])
        assert code == 1
        assert "Error [UnknownDependency]" in capsys.readouterr().err
        assert not project_config.app_dir.exists()

    @pytest.mark.unit
    def test_missing_prd(self, config_file, tmp_path, capsys):
        code = main(["--config", str(config_file), "suggest-deps", "--prd", str(tmp_path / "x.md")])
        assert code == 1
        assert "Error [InputError]" in capsys.readouterr().err

    @pytest.mark.unit
    def test_build_without_project(self, config_file, capsys):
        assert main(["--config", str(config_file), "build"]) == 1
        assert "Error [StateNotFound]" in capsys.readouterr().err

    @pytest.mark.unit
    def test_init_write_failure_is_reported(
        self, config_file, capsys, project_config, mock_http_client, make_starter_zip
    ):
        client = mock_http_client(content=make_starter_zip())
        with patch("httpx.AsyncClient", return_value=client), patch(
            "spring_init.scaffolder.build_sync.write_text_atomic",
            side_effect=OSError(28, "No space left on device"),
        ):
            code = main(["--config", str(config_file), "init"])

        assert code == 1
        assert "Error [DescriptorParseError]" in capsys.readouterr().err
        assert not project_config.app_dir.exists()
