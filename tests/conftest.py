"""Shared pytest fixtures for the spring-init test suite.

Provides reusable fixtures for:
- A valid ``ProjectConfig`` rooted in a temporary directory
- The bundled dependency catalog
- A start.spring.io style ``pom.xml`` and generated project archives
- Mocked ``httpx.AsyncClient`` instances and AI clients
"""

from __future__ import annotations

import io
import json
import textwrap
import zipfile
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from spring_init.ai_client import AIResponse
from spring_init.catalog import DependencyCatalog
from spring_init.config import PluginSpec, ProjectConfig


# ---------------------------------------------------------------------------
# Sample descriptor
# ---------------------------------------------------------------------------

SAMPLE_POM = textwrap.dedent("""\
    <?xml version="1.0" encoding="UTF-8"?>
    <project xmlns="http://maven.apache.org/POM/4.0.0" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
    \txsi:schemaLocation="http://maven.apache.org/POM/4.0.0 https://maven.apache.org/xsd/maven-4.0.0.xsd">
    \t<modelVersion>4.0.0</modelVersion>
    \t<parent>
    \t\t<groupId>org.springframework.boot</groupId>
    \t\t<artifactId>spring-boot-starter-parent</artifactId>
    \t\t<version>3.3.4</version>
    \t\t<relativePath/> <!-- lookup parent from repository -->
    \t</parent>
    \t<groupId>com.example.demo</groupId>
    \t<artifactId>demo</artifactId>
    \t<version>0.0.1-SNAPSHOT</version>
    \t<name>demo</name>
    \t<description>Demo project for Spring Boot</description>
    \t<properties>
    \t\t<java.version>21</java.version>
    \t</properties>
    \t<dependencies>
    \t\t<dependency>
    \t\t\t<groupId>org.springframework.boot</groupId>
    \t\t\t<artifactId>spring-boot-starter-web</artifactId>
    \t\t</dependency>
    \t</dependencies>

    \t<build>
    \t\t<plugins>
    \t\t\t<plugin>
    \t\t\t\t<groupId>org.springframework.boot</groupId>
    \t\t\t\t<artifactId>spring-boot-maven-plugin</artifactId>
    \t\t\t</plugin>
    \t\t</plugins>
    \t</build>

    </project>
""")


@pytest.fixture
def sample_pom() -> str:
    """``pom.xml`` text as start.spring.io generates it (tab indented)."""
    return SAMPLE_POM


@pytest.fixture
def jacoco_plugin() -> PluginSpec:
    return PluginSpec(
        group_id="org.jacoco",
        artifact_id="jacoco-maven-plugin",
        version="0.8.12",
    )


# ---------------------------------------------------------------------------
# Configuration & catalog
# ---------------------------------------------------------------------------


@pytest.fixture
def config_data(tmp_path: Path) -> dict[str, Any]:
    """Raw ``config.json`` content for a project under ``tmp_path``."""
    return {
        "boot_version": "3.3.4",
        "java_version": "21",
        "app_name": "demo",
        "app_version": "0.0.1-SNAPSHOT",
        "package_name": "com.example.demo",
        "projects_dir": str(tmp_path / "projects"),
        "maven_plugins": [
            {
                "group_id": "org.jacoco",
                "artifact_id": "jacoco-maven-plugin",
                "version": "0.8.12",
            }
        ],
    }


@pytest.fixture
def project_config(config_data: dict[str, Any]) -> ProjectConfig:
    return ProjectConfig.model_validate(config_data)


@pytest.fixture
def config_file(tmp_path: Path, config_data: dict[str, Any]) -> Path:
    """``config.json`` written to disk."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config_data, indent=2), encoding="utf-8")
    return path


@pytest.fixture(scope="session")
def catalog() -> DependencyCatalog:
    """The catalog bundled with spring-init."""
    return DependencyCatalog.bundled()


# ---------------------------------------------------------------------------
# Generated project archives
# ---------------------------------------------------------------------------


@pytest.fixture
def make_starter_zip():
    """Factory that builds a generator-style zip archive in memory.

    Usage::

        def test_something(make_starter_zip):
            data = make_starter_zip()                     # demo/pom.xml + sources
            data = make_starter_zip({"demo/README": "x"})  # custom members
    """

    def factory(
        members: dict[str, str] | None = None,
        base_dir: str = "demo",
        pom: str = SAMPLE_POM,
    ) -> bytes:
        if members is None:
            members = {
                f"{base_dir}/pom.xml": pom,
                f"{base_dir}/src/main/java/com/example/demo/DemoApplication.java": (
                    "package com.example.demo;\n\npublic class DemoApplication {}\n"
                ),
                f"{base_dir}/src/main/resources/application.properties": (
                    "spring.application.name=demo\n"
                ),
            }
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for name, content in members.items():
                zf.writestr(name, content)
        return buffer.getvalue()

    return factory


# ---------------------------------------------------------------------------
# Mock HTTP
# ---------------------------------------------------------------------------


def _status_error(status_code: int, text: str) -> httpx.HTTPStatusError:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return httpx.HTTPStatusError("HTTP error", request=MagicMock(), response=response)


@pytest.fixture
def mock_http_client():
    """Factory for a mocked ``httpx.AsyncClient`` usable with ``async with``.

    Patch it in with ``patch("httpx.AsyncClient", return_value=client)``.

    Args (of the factory):
        content: Raw body bytes returned by ``response.content``.
        json_data: Value returned by ``response.json()``.
        status_code: HTTP status; ``>= 400`` makes ``raise_for_status`` raise.
        side_effect: Exception raised by ``get``/``post`` instead of responding.
    """

    def factory(
        content: bytes = b"",
        json_data: Any = None,
        status_code: int = 200,
        side_effect: Exception | None = None,
    ) -> AsyncMock:
        response = MagicMock()
        response.status_code = status_code
        response.content = content
        response.text = content.decode("utf-8", errors="replace")
        response.json.return_value = json_data
        if status_code >= 400:
            response.raise_for_status = MagicMock(
                side_effect=_status_error(status_code, "generator error")
            )
        else:
            response.raise_for_status = MagicMock()

        client = AsyncMock()
        if side_effect is not None:
            client.get = AsyncMock(side_effect=side_effect)
            client.post = AsyncMock(side_effect=side_effect)
        else:
            client.get = AsyncMock(return_value=response)
            client.post = AsyncMock(return_value=response)
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)
        return client

    return factory


@pytest.fixture
def mock_ai():
    """Factory for an AI client whose ``complete`` returns *text*.

    Pass ``success=False`` (and ``error``) to simulate a failed call.
    """

    def factory(text: str = "", success: bool = True, error: str | None = None) -> MagicMock:
        client = MagicMock()
        client.model = "test-model"
        client.complete = AsyncMock(
            return_value=AIResponse(text=text, model="test-model", success=success, error=error)
        )
        return client

    return factory
