"""
Jinja2 template loader for operator-facing text reports.

Report layouts live in fleetwatch/templates/ as .jinja2 files, not in Python
string literals. Use render_template() to render one with variables.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

# Resolve templates/ relative to this file: fleetwatch/utils/templates.py → fleetwatch/templates/
_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATES_DIR)),
    undefined=StrictUndefined,   # raise on undefined variables
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_template(name: str, **kwargs: object) -> str:
    """Render a Jinja2 template from the templates/ directory.

    Raises:
        jinja2.TemplateNotFound: If the template file doesn't exist.
        jinja2.UndefinedError: If the template references a variable not in kwargs.
    """
    template = _env.get_template(name)
    return template.render(**kwargs)
