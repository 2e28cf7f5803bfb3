"""Jinja2 template rendering for build descriptor fragments.

Provides the TemplateRenderer class which loads Jinja2 templates from the
``spring_init/scaffolder/templates/`` directory. The build synchronizer uses
it to render ``<plugin>`` declarations before splicing them into the
generated ``pom.xml``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from xml.sax.saxutils import escape

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"

PLUGIN_TEMPLATE = "plugin.xml.j2"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates for descriptor fragments.

    Templates are plain text with ``trim_blocks``/``lstrip_blocks`` enabled so
    block tags never leave blank lines in the rendered XML.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["xml_text"] = _xml_text_filter
        self.env.filters["xml_elements"] = _xml_elements_filter

    # -- Rendering ---------------------------------------------------------

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory.
            context: Dictionary of variables available inside the template.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)

    def render_plugin(self, plugin: Any, indent: str = "    ") -> list[str]:
        """Render one ``<plugin>`` declaration as a list of lines.

        Lines are indented relative to the ``<plugin>`` tag using *indent*
        as the unit; the caller adds the base indentation.
        """
        content = self.render(PLUGIN_TEMPLATE, {"plugin": plugin, "indent": indent})
        return [line for line in content.splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _xml_text_filter(value: Any) -> str:
    """Escape a scalar for use as XML character data."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return escape(str(value))


def _singular(name: str) -> str:
    """``excludes`` -> ``exclude``, ``properties`` -> ``property``."""
    if name.endswith("ies") and len(name) > 3:
        return name[:-3] + "y"
    if name.endswith("s") and len(name) > 1:
        return name[:-1]
    return name


def _xml_elements_filter(mapping: dict[str, Any], indent: str = "    ") -> list[str]:
    """Render a nested mapping as XML element lines.

    Mappings become nested elements, lists become a wrapper element whose
    scalar items use the singular of the wrapper name (Maven's collection
    convention), and ``None`` becomes an empty element.
    """
    lines: list[str] = []
    for key, value in mapping.items():
        if isinstance(value, dict):
            lines.append(f"<{key}>")
            lines.extend(indent + line for line in _xml_elements_filter(value, indent))
            lines.append(f"</{key}>")
        elif isinstance(value, (list, tuple)):
            lines.append(f"<{key}>")
            child = _singular(key)
            for item in value:
                if isinstance(item, dict):
                    lines.extend(indent + line for line in _xml_elements_filter(item, indent))
                else:
                    lines.append(f"{indent}<{child}>{_xml_text_filter(item)}</{child}>")
            lines.append(f"</{key}>")
        elif value is None:
            lines.append(f"<{key}/>")
        else:
            lines.append(f"<{key}>{_xml_text_filter(value)}</{key}>")
    return lines
