"""
Jinja2 rendering for outgoing email.

Each email ships as a pair of templates, ``<name>.html`` and ``<name>.txt``,
under ``EMAIL_TEMPLATE_DIR``.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from portal.config import settings

logger = logging.getLogger(__name__)


class TemplateService:

    def __init__(self, template_dir: Optional[str] = None):
        self.template_dir = Path(template_dir or settings.email_template_dir)
        if not self.template_dir.is_dir():
            logger.warning(f"[EMAIL] Template directory missing: {self.template_dir}")

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            # only the HTML variant is escaped
            autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
            trim_blocks=True,
            lstrip_blocks=True
        )

    def render(self, filename: str, context: Dict[str, Any]) -> str:
        try:
            return self.env.get_template(filename).render(**context)
        except TemplateNotFound as e:
            logger.error(f"[EMAIL] No template '{filename}' in {self.template_dir}")
            raise TemplateNotFound(f"{filename} (searched {self.template_dir})") from e

    def render_email(self, template: str, context: Dict[str, Any]) -> Dict[str, str]:
        """
        Render both bodies of an email.

        Returns ``{"html": ..., "text": ...}``. A missing variant raises
        ``TemplateNotFound``; syntax errors propagate from Jinja2 unchanged.
        """
        bodies = {
            "html": self.render(f"{template}.html", context),
            "text": self.render(f"{template}.txt", context),
        }
        logger.debug(f"[EMAIL] Rendered '{template}' templates")
        return bodies


template_service = TemplateService()
