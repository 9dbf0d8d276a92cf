# backend/rentitforward/services/template_service.py
"""
Template rendering for notification emails.

Jinja2 environment over ``rentitforward/templates`` with the brand context
merged into every render.
"""

from datetime import date, datetime
from decimal import Decimal
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from ..core.config import settings
from ..core.constants import BRAND_NAME

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"


def _currency(value: Any) -> str:
    """Format a number as currency."""
    return f"${Decimal(str(value or 0)):,.2f}"


def _format_date(value: Any, format_str: str = "%d %B %Y") -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime(format_str)
    return str(value)


class TemplateService:
    """Centralized template rendering using Jinja2."""

    def __init__(self, template_dir: Optional[Path] = None):
        self.env = Environment(
            loader=FileSystemLoader(template_dir or TEMPLATE_DIR),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["currency"] = _currency
        self.env.filters["format_date"] = _format_date

    def get_common_context(self) -> Dict[str, Any]:
        return {
            "brand_name": BRAND_NAME,
            "current_year": datetime.now().year,
            "frontend_url": settings.frontend_url,
            "support_email": settings.from_email,
        }

    def render_template(
        self, template_name: str, context: Optional[Dict[str, Any]] = None, **kwargs: Any
    ) -> str:
        """
        Render a template with the common context plus ``context``.

        Raises:
            TemplateNotFound: If template doesn't exist
        """
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound:
            logger.error(f"Template not found: {template_name}")
            raise

        full_context = self.get_common_context()
        if context:
            full_context.update(context)
        full_context.update(kwargs)
        return template.render(full_context)
