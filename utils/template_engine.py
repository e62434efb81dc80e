"""Plugin skeleton and prompt templates.

Templates live under ``config/templates``:

    plugin/   pom.xml, plugin.yml and main class skeletons (``*.tpl``)
    prompts/  one text file per model prompt

Both are rendered with string.Template.
"""

import os
from string import Template

TEMPLATE_CATEGORIES = ("plugin", "prompts")


def get_templates_dir():
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "config", "templates")


def load_template(category, template_name):
    """Read ``<category>/<template_name>``. Raises ValueError for a name outside the tree."""
    if category not in TEMPLATE_CATEGORIES:
        raise ValueError(f"Unknown template category: {category}")
    category_dir = os.path.realpath(os.path.join(get_templates_dir(), category))
    resolved = os.path.realpath(os.path.join(category_dir, template_name))
    if not resolved.startswith(category_dir + os.sep):
        raise ValueError(f"Template path escapes {category}/: {template_name}")
    with open(resolved, "r", encoding="utf-8") as fp:
        return fp.read()


def render_template(category, template_name, variables):
    """Fill ``$placeholders`` in a plugin or prompt template.

    safe_substitute leaves Maven properties such as ${project.version}
    and ${java.version} in the pom untouched.
    """
    return Template(load_template(category, template_name)).safe_substitute(variables)
