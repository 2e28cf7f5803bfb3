"""spring-init configuration.

Typed configuration for the whole tool. All settings use Pydantic v2 models so
they are validated once at load time and can be serialised back to JSON
without boiler-plate. The core never mutates a loaded ``ProjectConfig``;
helpers such as :meth:`ProjectConfig.with_env_overrides` return a copy.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from spring_init.errors import ConfigError

DEFAULT_CONFIG_FILE = Path("config.json")

_APP_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_PACKAGE_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")
_XML_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")


class PluginSpec(BaseModel):
    """A Maven build plugin to add to the generated ``pom.xml``.

    Identity for de-duplication is ``(group_id, artifact_id)``; ``version``
    and ``configuration`` never take part in the comparison.
    """

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(..., min_length=1)
    artifact_id: str = Field(..., min_length=1)
    version: Optional[str] = Field(default=None)
    configuration: Optional[dict[str, Any]] = Field(
        default=None,
        description="Nested mapping rendered as the plugin's <configuration> block",
    )

    @field_validator("group_id", "artifact_id", "version")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value is not None else None

    @field_validator("configuration")
    @classmethod
    def _check_element_names(cls, value: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
        if value is not None:
            _check_xml_names(value)
        return value

    @property
    def key(self) -> tuple[str, str]:
        return (self.group_id, self.artifact_id)


def _check_xml_names(value: Any) -> None:
    """Reject configuration keys that cannot be XML element names."""
    if isinstance(value, dict):
        for key, child in value.items():
            if not isinstance(key, str) or not _XML_NAME_PATTERN.match(key):
                raise ValueError(f"{key!r} is not a valid XML element name")
            _check_xml_names(child)
    elif isinstance(value, list):
        for item in value:
            _check_xml_names(item)


# Endpoint and model used when ``ai.url`` / ``ai.model`` are left unset.
AI_PROVIDER_DEFAULTS: dict[str, tuple[str, str]] = {
    "ollama": ("http://localhost:11434", "qwen2.5-coder:14b"),
    "anthropic": ("https://api.anthropic.com", "claude-sonnet-4-5"),
}


class AIConfig(BaseModel):
    """Connection settings for the AI suggestion service.

    ``url`` and ``model`` default to the selected provider's values, so
    switching ``provider`` alone is enough to reach a working endpoint.
    """

    provider: Literal["ollama", "anthropic"] = Field(default="ollama")
    url: Optional[str] = Field(default=None, description="Service base URL (provider default if unset)")
    model: Optional[str] = Field(default=None, description="Model id (provider default if unset)")
    timeout: int = Field(default=120, ge=10, description="Per-request timeout in seconds")
    api_key_env: str = Field(
        default="ANTHROPIC_API_KEY",
        description="Environment variable holding the API key (anthropic only)",
    )
    max_tokens: int = Field(default=1024, ge=64)

    @property
    def effective_url(self) -> str:
        return self.url or AI_PROVIDER_DEFAULTS[self.provider][0]

    @property
    def effective_model(self) -> str:
        return self.model or AI_PROVIDER_DEFAULTS[self.provider][1]


class GeneratorConfig(BaseModel):
    """Connection settings for the start.spring.io compatible generator."""

    url: str = Field(default="https://start.spring.io")
    timeout: int = Field(default=60, ge=5, description="Download timeout in seconds")


class ProjectConfig(BaseModel):
    """Effective configuration for one spring-init project.

    Loaded from ``config.json`` at process start and passed down to every
    component that needs it.
    """

    boot_version: str = Field(..., min_length=1)
    java_version: str = Field(..., min_length=1)
    app_name: str = Field(..., min_length=1)
    app_version: str = Field(..., min_length=1)
    package_name: str = Field(..., min_length=1)
    projects_dir: Path
    maven_plugins: list[PluginSpec] = Field(default_factory=list)
    include_deps: list[str] = Field(default_factory=list)

    catalog_source: Literal["bundled", "file", "remote"] = Field(default="bundled")
    catalog_path: Optional[Path] = Field(default=None)
    ai: AIConfig = Field(default_factory=AIConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)

    @field_validator("app_name")
    @classmethod
    def _check_app_name(cls, value: str) -> str:
        if not _APP_NAME_PATTERN.match(value) or value in (".", ".."):
            raise ValueError(f"app_name must be a plain directory name, got {value!r}")
        return value

    @field_validator("package_name")
    @classmethod
    def _check_package_name(cls, value: str) -> str:
        if not _PACKAGE_PATTERN.match(value):
            raise ValueError(f"package_name must be a dotted Java package, got {value!r}")
        return value

    @field_validator("include_deps")
    @classmethod
    def _strip_include_deps(cls, value: list[str]) -> list[str]:
        return [v.strip() for v in value if v.strip()]

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def app_dir(self) -> Path:
        """Directory the generated project is extracted into."""
        return self.projects_dir / self.app_name

    @property
    def jar_path(self) -> Path:
        """Path of the jar produced by ``mvn package``."""
        return self.app_dir / "target" / f"{self.app_name}-{self.app_version}.jar"

    @property
    def lock_path(self) -> Path:
        """Lock file guarding the project directory during ``init``."""
        return self.projects_dir / f".{self.app_name}.lock"

    @property
    def effective_catalog_source(self) -> str:
        if self.catalog_path is not None and self.catalog_source == "bundled":
            return "file"
        return self.catalog_source

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | str = DEFAULT_CONFIG_FILE) -> "ProjectConfig":
        """Load and validate a configuration file.

        Raises:
            ConfigError: If the file is missing, not JSON, or fails validation.
        """
        config_file = Path(path)
        if not config_file.exists():
            raise ConfigError(f"Configuration file not found: {config_file}")
        try:
            raw = config_file.read_text(encoding="utf-8")
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {config_file}:\n{exc}") from exc
        except OSError as exc:
            raise ConfigError(f"Could not read {config_file}: {exc}") from exc

    def with_env_overrides(self) -> "ProjectConfig":
        """Return a copy with ``SPRING_INIT_*`` environment variables applied.

        Recognised variables (all optional):
            SPRING_INIT_AI_PROVIDER, SPRING_INIT_AI_URL, SPRING_INIT_AI_MODEL,
            SPRING_INIT_AI_TIMEOUT, SPRING_INIT_GENERATOR_URL,
            SPRING_INIT_PROJECTS_DIR.
        """
        ai_kwargs: dict[str, Any] = {}
        if os.environ.get("SPRING_INIT_AI_PROVIDER"):
            ai_kwargs["provider"] = os.environ["SPRING_INIT_AI_PROVIDER"]
        if os.environ.get("SPRING_INIT_AI_URL"):
            ai_kwargs["url"] = os.environ["SPRING_INIT_AI_URL"]
        if os.environ.get("SPRING_INIT_AI_MODEL"):
            ai_kwargs["model"] = os.environ["SPRING_INIT_AI_MODEL"]
        if os.environ.get("SPRING_INIT_AI_TIMEOUT"):
            ai_kwargs["timeout"] = os.environ["SPRING_INIT_AI_TIMEOUT"]

        update: dict[str, Any] = {}
        if ai_kwargs:
            try:
                update["ai"] = AIConfig.model_validate({**self.ai.model_dump(), **ai_kwargs})
            except ValidationError as exc:
                raise ConfigError(f"Invalid SPRING_INIT_AI_* override:\n{exc}") from exc
        if os.environ.get("SPRING_INIT_GENERATOR_URL"):
            update["generator"] = self.generator.model_copy(
                update={"url": os.environ["SPRING_INIT_GENERATOR_URL"]}
            )
        if os.environ.get("SPRING_INIT_PROJECTS_DIR"):
            update["projects_dir"] = Path(os.environ["SPRING_INIT_PROJECTS_DIR"])

        if not update:
            return self
        return self.model_copy(update=update)
