"""spring-init orchestrator and CLI.

Wires the components into the user-facing commands:

* ``init``          -- resolve dependencies, generate the project, add plugins, record state.
* ``suggest-deps``  -- show what the AI suggests for a PRD, without touching disk.
* ``deps``          -- list the dependency catalog.
* ``build``         -- re-sync plugins into ``pom.xml`` and run ``mvn package``.
* ``run``           -- build, then ``java -jar`` the packaged application.
* ``info``          -- show the configuration and any recorded project state.
* ``reset``         -- delete the recorded state and the generated project.

Usage::

    python -m spring_init init --prd docs/prd.md --include security,validation
    python -m spring_init suggest-deps --prd docs/prd.md
"""

from __future__ import annotations

import argparse
import asyncio
import os
import shutil
import sys
import time
from pathlib import Path

from rich.markup import escape
from rich.table import Table

from spring_init.ai_client import AIClient
from spring_init.catalog import DependencyCatalog, load_catalog
from spring_init.config import DEFAULT_CONFIG_FILE, ProjectConfig
from spring_init.errors import BuildCommandError, SpringInitError
from spring_init.resolution import (
    RejectedToken,
    RequirementAnalyzer,
    ResolvedDependencySet,
    parse_include_option,
    read_prd,
    resolve,
    validate,
)
from spring_init.scaffolder import BuildSynchronizer, ProjectHandle, ProjectInitializer
from spring_init.state import ProjectState, ProjectStateManager
from spring_init.utils import (
    console,
    err_console,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
    run_command,
)

# Suggestion seed used when ``init`` runs without a PRD.
DEFAULT_SEED: tuple[str, ...] = ("web",)

MAVEN_TIMEOUT = 1800


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class SpringInit:
    """Runs spring-init commands against one configuration.

    Attributes:
        config: Loaded project configuration (read-only).
        catalog: Dependency catalog, or ``None`` for commands that do not need it.
        client: AI suggestion client.
    """

    def __init__(
        self,
        config: ProjectConfig,
        catalog: DependencyCatalog | None = None,
        client: AIClient | None = None,
    ) -> None:
        self.config = config
        self.catalog = catalog
        self.client = client or AIClient.from_config(config.ai)
        self.synchronizer = BuildSynchronizer()
        self.initializer = ProjectInitializer(config)
        self.states = ProjectStateManager()

    def _require_catalog(self) -> DependencyCatalog:
        if self.catalog is None:
            raise RuntimeError("This command needs the dependency catalog to be loaded")
        return self.catalog

    # ------------------------------------------------------------------
    # Dependency resolution
    # ------------------------------------------------------------------

    async def suggest(self, prd_text: str) -> tuple[ResolvedDependencySet, list[RejectedToken]]:
        """Ask the AI service for dependencies and validate its answer."""
        catalog = self._require_catalog()
        analyzer = RequirementAnalyzer(self.client, catalog)
        tokens = await analyzer.analyze(prd_text)
        suggested, rejected = validate(tokens, catalog)
        for token in rejected:
            print_warning(f"  Ignoring unknown suggestion {token.original!r} ({token.reason.value})")
        return suggested, rejected

    async def resolve_dependencies(
        self,
        prd_text: str | None,
        include: list[str],
    ) -> ResolvedDependencySet:
        """Combine PRD suggestions (or the default seed) with included ids."""
        catalog = self._require_catalog()
        if prd_text is not None:
            console.print("  Analyzing PRD for dependency suggestions...")
            suggested, _ = await self.suggest(prd_text)
        else:
            suggested, rejected = validate(DEFAULT_SEED, catalog)
            for token in rejected:
                print_warning(f"  Default dependency {token.original!r} is not in the catalog")
        return resolve(suggested, [*self.config.include_deps, *include], catalog)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def init(self, prd_text: str | None = None, include: list[str] | None = None) -> ProjectState:
        """Generate the project, add configured plugins and record state."""
        self.initializer.check_target()
        deps = await self.resolve_dependencies(prd_text, include or [])
        console.print(f"  Using dependencies: [bold]{escape(deps.as_param() or '(none)')}[/bold]")

        console.print("  Downloading Spring Boot scaffold...")
        handle = await self.initializer.initialize(deps)
        console.print(f"  Project extracted to [bold]{escape(str(handle.root))}[/bold]")

        # A directory without a state record can be neither reset nor
        # re-initialized, so any failure from here on removes it.
        try:
            inserted = await asyncio.to_thread(
                self.synchronizer.sync, handle.root, self.config.maven_plugins
            )
            self._report_plugins(inserted)
            state = await self.states.record(handle, self.config.maven_plugins, self.config)
        except BaseException:
            shutil.rmtree(handle.root, ignore_errors=True)
            raise
        print_success("Project initialization complete")
        return state

    async def suggest_deps(self, prd_text: str) -> ResolvedDependencySet:
        """Print validated suggestions for a PRD."""
        catalog = self._require_catalog()
        suggested, _ = await self.suggest(prd_text)
        table = Table(title="Suggested dependencies", header_style="bold cyan")
        table.add_column("ID", style="bold")
        table.add_column("Name")
        table.add_column("Category", style="dim")
        for dep_id in suggested:
            entry = catalog.get(dep_id)
            table.add_row(escape(entry.id), escape(entry.name), escape(entry.category))
        console.print(table)
        if suggested:
            console.print(f"--include {escape(suggested.as_param())}")
        else:
            print_warning("No valid dependencies were suggested.")
        return suggested

    def deps(self) -> None:
        """Print the catalog grouped by category."""
        catalog = self._require_catalog()
        table = Table(title=f"Dependency catalog ({len(catalog)})", header_style="bold cyan")
        table.add_column("Category", style="dim")
        table.add_column("ID", style="bold")
        table.add_column("Name")
        table.add_column("Description")
        for category, entries in catalog.categories().items():
            for entry in entries:
                table.add_row(
                    escape(category), escape(entry.id), escape(entry.name), escape(entry.description)
                )
        console.print(table)

    async def build(self, sync_only: bool = False) -> ProjectState:
        """Re-sync plugins into ``pom.xml`` and package the project."""
        root = self.config.app_dir
        state = self.states.load(root)

        inserted = await asyncio.to_thread(self.synchronizer.sync, root, self.config.maven_plugins)
        self._report_plugins(inserted)
        handle = ProjectHandle(root=root, dependencies=ResolvedDependencySet.of(state.dependencies))
        state = await self.states.record(handle, self.config.maven_plugins, self.config)

        if sync_only:
            print_success("Build descriptor is up to date")
            return state

        command = self._maven_command(root)
        console.print(f"  Building project with [bold]{escape(' '.join(command))}[/bold]...")
        started = time.monotonic()
        returncode, _, stderr = await run_command(
            command, cwd=root, timeout=MAVEN_TIMEOUT, capture=False
        )
        if returncode != 0:
            raise BuildCommandError(" ".join(command), returncode, stderr)
        print_success(f"Build complete in {time.monotonic() - started:.1f}s")
        return state

    async def run(self) -> int:
        """Build, then run the packaged jar in the foreground."""
        await self.build()
        jar = self.config.jar_path
        console.print(f"  Running [bold]{escape(str(jar))}[/bold]...")
        returncode, _, stderr = await run_command(
            ["java", "-jar", str(jar)], timeout=None, capture=False
        )
        if returncode != 0:
            raise BuildCommandError(f"java -jar {jar}", returncode, stderr)
        return returncode

    def info(self) -> ProjectState | None:
        """Print configuration values and recorded state, if any."""
        cfg = self.config
        print_summary_table(
            {
                "APP_NAME": cfg.app_name,
                "PACKAGE_NAME": cfg.package_name,
                "ARTIFACT_NAME": cfg.app_name,
                "VERSION": cfg.app_version,
                "BOOT_VERSION": cfg.boot_version,
                "JAVA_VERSION": cfg.java_version,
                "PROJECTS_DIR": str(cfg.projects_dir),
                "APP_DIR": str(cfg.app_dir),
                "JAR_PATH": str(cfg.jar_path),
            },
            title="Configuration",
        )
        if not self.states.exists(cfg.app_dir):
            print_warning("No project has been initialized yet.")
            return None

        state = self.states.load(cfg.app_dir)
        print_summary_table(
            {
                "DEPENDENCIES": ", ".join(state.dependencies) or "(none)",
                "PLUGINS": ", ".join(
                    f"{p.group_id}:{p.artifact_id}" for p in state.plugins
                ) or "(none)",
                "CREATED": state.created_at,
                "UPDATED": state.updated_at,
            },
            title="Project state",
        )
        return state

    def reset(self) -> Path:
        """Remove the recorded state and the generated project directory."""
        removed = self.states.clear(self.config.app_dir)
        print_success(f"Project reset complete ({removed})")
        return removed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _maven_command(root: Path) -> list[str]:
        wrapper = root / "mvnw"
        if wrapper.is_file() and os.access(wrapper, os.X_OK):
            return [str(wrapper), "package"]
        return ["mvn", "package"]

    @staticmethod
    def _report_plugins(inserted: list) -> None:
        if not inserted:
            console.print("  [dim]No build plugins to add.[/dim]")
            return
        for plugin in inserted:
            console.print(
                f"  [green]+[/green] Added plugin {escape(plugin.group_id)}:{escape(plugin.artifact_id)}"
            )


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

_CATALOG_COMMANDS = {"init", "suggest-deps", "deps"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spring-init",
        description="Create and manage Spring Boot projects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  spring-init init --prd prd.md --include security\n"
            "  spring-init suggest-deps --prd prd.md\n"
            "  spring-init build\n"
        ),
    )
    parser.add_argument(
        "--config", "-c",
        default=str(DEFAULT_CONFIG_FILE),
        help=f"Configuration file (default: {DEFAULT_CONFIG_FILE})",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("info", help="Display project information")
    sub.add_parser("reset", help="Delete the generated project and its state")
    sub.add_parser("deps", help="List the dependency catalog")

    init = sub.add_parser("init", help="Initialize a new Spring Boot project")
    init.add_argument("--prd", default=None, help="PRD file for automatic dependency selection")
    init.add_argument("--include", default=None, help="Comma-separated dependency ids to always include")

    build = sub.add_parser("build", help="Sync build plugins and package the project")
    build.add_argument("--sync-only", action="store_true", help="Only update pom.xml")

    sub.add_parser("run", help="Build and run the project")

    suggest = sub.add_parser("suggest-deps", help="Suggest dependencies based on a PRD")
    suggest.add_argument("--prd", required=True, help="PRD file to analyze")

    return parser


async def _dispatch(args: argparse.Namespace, config: ProjectConfig) -> None:
    catalog: DependencyCatalog | None = None
    prd_text: str | None = None
    prd_path = getattr(args, "prd", None)

    if args.command in _CATALOG_COMMANDS:
        catalog_task = load_catalog(
            config.effective_catalog_source,
            path=config.catalog_path,
            generator_url=config.generator.url,
            timeout=config.generator.timeout,
        )
        if prd_path:
            prd_text, catalog = await asyncio.gather(read_prd(prd_path), catalog_task)
        else:
            catalog = await catalog_task

    app = SpringInit(config, catalog)
    if args.command == "init":
        await app.init(prd_text, parse_include_option(args.include))
    elif args.command == "suggest-deps":
        await app.suggest_deps(prd_text or "")
    elif args.command == "deps":
        app.deps()
    elif args.command == "build":
        await app.build(sync_only=args.sync_only)
    elif args.command == "run":
        await app.run()
    elif args.command == "info":
        app.info()
    elif args.command == "reset":
        app.reset()


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for ``spring-init`` / ``python -m spring_init``."""
    args = build_parser().parse_args(argv)
    try:
        config = ProjectConfig.load(args.config).with_env_overrides()
        asyncio.run(_dispatch(args, config))
    except SpringInitError as exc:
        if not exc.fatal:
            err_console.print(f"[bold yellow]{exc.kind}:[/bold yellow] {escape(str(exc))}")
            return 0
        print_error(f"Error [{exc.kind}]: {exc}")
        return 1
    except KeyboardInterrupt:
        err_console.print("[bold red]Interrupted.[/bold red]")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
