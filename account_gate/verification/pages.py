"""
HTML result pages for action links opened from Telegram.
"""

import html
from pathlib import Path

TEMPLATES_DIR = Path(__file__).parent / "templates"

SUCCESS_ICON = "✅"
ERROR_ICON = "⚠️"


def load_template(template_name: str) -> str:
    """
    Load a page template from the templates directory.

    Args:
        template_name: Name of the template file (e.g., 'action_result.html')
    """
    template_path = TEMPLATES_DIR / template_name
    if not template_path.exists():
        raise FileNotFoundError(f"Template {template_name} not found")

    with open(template_path, "r", encoding="utf-8") as f:
        return f.read()


def render_template(template: str, **kwargs) -> str:
    """Replace ``{{key}}`` placeholders with HTML-escaped values."""
    rendered = template
    for key, value in kwargs.items():
        rendered = rendered.replace(f"{{{{{key}}}}}", html.escape(str(value)))
    return rendered


def render_action_result(title: str, message: str, success: bool = True) -> str:
    return render_template(
        load_template("action_result.html"),
        title=title,
        message=message,
        icon=SUCCESS_ICON if success else ERROR_ICON,
    )
