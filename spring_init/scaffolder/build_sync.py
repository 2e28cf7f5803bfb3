"""Build synchronizer: idempotent plugin injection into ``pom.xml``.

The descriptor is read with ElementTree only to learn which
``(groupId, artifactId)`` pairs are already declared under
``project/build/plugins``. Missing plugins are rendered from a template and
spliced into the original text, so comments, ordering and formatting of the
generated file survive untouched. Declarations that already exist are never
modified, and a run that has nothing to add does not write the file.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable

from spring_init.config import PluginSpec
from spring_init.errors import DescriptorParseError
from spring_init.utils import write_text_atomic

from .templates import TemplateRenderer

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DESCRIPTOR_NAME = "pom.xml"
DEFAULT_PLUGIN_GROUP = "org.apache.maven.plugins"

_COMMENT_PATTERN = re.compile(r"<!--.*?-->", re.DOTALL)
_INDENTED_LINE = re.compile(r"^([ \t]+)<", re.MULTILINE)


# ---------------------------------------------------------------------------
# Descriptor inspection
# ---------------------------------------------------------------------------

def _read_descriptor(pom: Path) -> str:
    """Read ``pom.xml`` with its line endings intact."""
    try:
        return pom.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DescriptorParseError(f"Could not read {pom}: {exc}") from exc


def _parse(text: str, source: Path) -> ET.Element:
    try:
        return ET.fromstring(text.encode("utf-8"))
    except ET.ParseError as exc:
        raise DescriptorParseError(f"{source} is not well-formed XML: {exc}") from exc


def _qualify(root: ET.Element):
    """Return a helper that turns ``'build'`` into ``'{ns}build'`` for the POM namespace."""
    ns = root.tag[1:root.tag.index("}")] if root.tag.startswith("{") else ""

    def q(name: str) -> str:
        return f"{{{ns}}}{name}" if ns else name

    return q


def declared_plugins(root: ET.Element) -> list[tuple[str, str]]:
    """Return the ``(groupId, artifactId)`` pairs under ``project/build/plugins``.

    Plugins inside ``pluginManagement`` or profiles are not counted. A
    declaration without ``groupId`` belongs to Maven's default plugin group.
    """
    q = _qualify(root)
    build = root.find(q("build"))
    if build is None:
        return []
    plugins = build.find(q("plugins"))
    if plugins is None:
        return []

    keys: list[tuple[str, str]] = []
    for plugin in plugins.findall(q("plugin")):
        artifact_id = (plugin.findtext(q("artifactId")) or "").strip()
        if not artifact_id:
            continue
        group_id = (plugin.findtext(q("groupId")) or DEFAULT_PLUGIN_GROUP).strip()
        keys.append((group_id, artifact_id))
    return keys


def _blank_comments(text: str) -> str:
    """Replace comments with spaces so tag searches skip them but offsets stay valid."""
    return _COMMENT_PATTERN.sub(lambda m: re.sub(r"[^\n]", " ", m.group(0)), text)


def _spans(pattern_open: str, pattern_close: str, text: str) -> list[tuple[int, int]]:
    spans: list[tuple[int, int]] = []
    for match in re.finditer(pattern_open, text):
        close = text.find(pattern_close, match.end())
        if close != -1:
            spans.append((match.start(), close + len(pattern_close)))
    return spans


def _outside(pos: int, spans: list[tuple[int, int]]) -> bool:
    return not any(start <= pos < end for start, end in spans)


def _open_tag(name: str) -> str:
    """Pattern for an opening or self-closing ``<name>`` tag."""
    return rf"<{name}(\s[^>]*)?/?>"


def _self_closing(match: re.Match) -> bool:
    return match.group(0).endswith("/>")


def _expand_empty(
    text: str, start: int, end: int, name: str, lines: list[str], indent: str, newline: str
) -> str:
    """Replace the empty element ``text[start:end]`` with an open/close pair around *lines*."""
    opening = text[start:end][:-2].rstrip() + ">"
    return text[:start] + newline.join([opening, *lines, f"{indent}</{name}>"]) + text[end:]


def _line_indent(text: str, pos: int) -> tuple[int, str | None]:
    """Return ``(line_start, indent)`` for *pos*; indent is ``None`` if the line has other content before it."""
    line_start = text.rfind("\n", 0, pos) + 1
    prefix = text[line_start:pos]
    if prefix.strip():
        return line_start, None
    return line_start, prefix


def _indent_unit(text: str) -> str:
    match = _INDENTED_LINE.search(text)
    return match.group(1) if match else "    "


# ---------------------------------------------------------------------------
# Synchronizer
# ---------------------------------------------------------------------------

class BuildSynchronizer:
    """Adds configured Maven plugins to a generated project's ``pom.xml``."""

    def __init__(self, renderer: TemplateRenderer | None = None) -> None:
        self.renderer = renderer or TemplateRenderer()

    def descriptor_path(self, project_root: str | Path) -> Path:
        return Path(project_root) / DESCRIPTOR_NAME

    def sync(self, project_root: str | Path, plugins: Iterable[PluginSpec]) -> list[PluginSpec]:
        """Insert every configured plugin that is not already declared.

        Returns:
            The plugins that were inserted, in configuration order. Empty
            when the descriptor was already up to date (and left unwritten).

        Raises:
            DescriptorParseError: If ``pom.xml`` is missing, malformed, has no
                ``<build>`` section, or cannot be rewritten. The file is
                untouched in that case.
        """
        pom = self._require_descriptor(project_root)
        text = _read_descriptor(pom)
        root = _parse(text, pom)
        to_add = self._missing(root, plugins, pom)
        if not to_add:
            return []

        new_text = self._insert(text, to_add, pom)

        updated = declared_plugins(_parse(new_text, pom))
        if any(plugin.key not in updated for plugin in to_add):
            raise DescriptorParseError(f"Could not place plugin declarations in {pom}")

        try:
            write_text_atomic(pom, new_text)
        except OSError as exc:
            raise DescriptorParseError(f"Could not write {pom}: {exc}") from exc
        return to_add

    # -- Internals ---------------------------------------------------------

    def _require_descriptor(self, project_root: str | Path) -> Path:
        pom = self.descriptor_path(project_root)
        if not pom.is_file():
            raise DescriptorParseError(f"Build descriptor not found: {pom}")
        return pom

    def _missing(
        self, root: ET.Element, plugins: Iterable[PluginSpec], pom: Path
    ) -> list[PluginSpec]:
        q = _qualify(root)
        if root.find(q("build")) is None:
            raise DescriptorParseError(f"{pom} has no <build> section")
        present = set(declared_plugins(root))
        missing: list[PluginSpec] = []
        for plugin in plugins:
            if plugin.key in present:
                continue
            present.add(plugin.key)
            missing.append(plugin)
        return missing

    def _insert(self, text: str, plugins: list[PluginSpec], pom: Path) -> str:
        newline = "\r\n" if "\r\n" in text else "\n"
        unit = _indent_unit(text)
        searchable = _blank_comments(text)

        profiles = _spans(r"<profiles(\s[^>]*)?>", "</profiles>", searchable)
        build_open = next(
            (m for m in re.finditer(_open_tag("build"), searchable) if _outside(m.start(), profiles)),
            None,
        )
        if build_open is None:
            raise DescriptorParseError(f"{pom} has no <build> section")
        if _self_closing(build_open):
            _, build_indent = _line_indent(text, build_open.start())
            indent = build_indent or ""
            lines = self._plugins_section(plugins, indent + unit, unit)
            return _expand_empty(text, build_open.start(), build_open.end(), "build", lines, indent, newline)

        build_close = searchable.find("</build>", build_open.end())
        if build_close == -1:
            raise DescriptorParseError(f"{pom} has an unterminated <build> section")

        build_body = searchable[build_open.end():build_close]
        managed = _spans(r"<pluginManagement(\s[^>]*)?>", "</pluginManagement>", build_body)
        plugins_open = next(
            (
                m for m in re.finditer(_open_tag("plugins"), build_body)
                if _outside(m.start(), managed)
            ),
            None,
        )

        if plugins_open is not None:
            open_start = build_open.end() + plugins_open.start()
            open_end = build_open.end() + plugins_open.end()
            if _self_closing(plugins_open):
                _, plugins_indent = _line_indent(text, open_start)
                indent = plugins_indent or ""
                lines = self._render(plugins, indent + unit, unit)
                return _expand_empty(text, open_start, open_end, "plugins", lines, indent, newline)

            close_pos = searchable.find("</plugins>", open_end)
            if close_pos == -1 or close_pos > build_close:
                raise DescriptorParseError(f"{pom} has an unterminated <plugins> section")
            line_start, closing_indent = _line_indent(text, close_pos)
            base = (closing_indent or "") + unit
            lines = self._render(plugins, base, unit)
            if closing_indent is None:
                block = newline + newline.join(lines) + newline
                return text[:close_pos] + block + text[close_pos:]
            block = newline.join(lines) + newline
            return text[:line_start] + block + text[line_start:]

        # No <plugins> yet: open one just before </build>.
        line_start, build_indent = _line_indent(text, build_close)
        lines = self._plugins_section(plugins, (build_indent or "") + unit, unit)
        if build_indent is None:
            block = newline + newline.join(lines) + newline
            return text[:build_close] + block + text[build_close:]
        block = newline.join(lines) + newline
        return text[:line_start] + block + text[line_start:]

    def _plugins_section(self, plugins: list[PluginSpec], indent: str, unit: str) -> list[str]:
        return [
            f"{indent}<plugins>",
            *self._render(plugins, indent + unit, unit),
            f"{indent}</plugins>",
        ]

    def _render(self, plugins: list[PluginSpec], base: str, unit: str) -> list[str]:
        lines: list[str] = []
        for plugin in plugins:
            lines.extend(base + line for line in self.renderer.render_plugin(plugin, indent=unit))
        return lines
