"""
Region Designer configuration — all environment variables in one place.

Read from environment at import time. Never hardcode secrets.
Nothing is required: the layout kernel runs without a server.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Content server
    API_URL: str = os.environ.get("DESIGNER_API_URL", "http://localhost:9992")
    API_TOKEN: str = os.environ.get("DESIGNER_API_TOKEN", "")
    HTTP_TIMEOUT: float = float(os.environ.get("DESIGNER_HTTP_TIMEOUT", "30"))

    # Document endpoints, "{id}" is replaced with the template/page id
    TEMPLATE_PATH: str = os.environ.get("DESIGNER_TEMPLATE_PATH", "/services/pagemanagement/template/{id}")
    PAGE_PATH: str = os.environ.get("DESIGNER_PAGE_PATH", "/services/pagemanagement/page/{id}")


# Singleton instance
settings = Settings()
