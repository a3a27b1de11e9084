"""Web application package for TranslateBridge."""

import os
from typing import Any, Dict, Optional

from flask import Flask

from translatebridge.config import initialize_app


def create_app(config: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Application factory for the web interface.

    Args:
        config: Optional Flask config overrides (e.g. TESTING, HTTP_TRANSPORT)
    """
    initialize_app()

    from .app import build_app  # Import here to avoid circular imports

    return build_app(config)


def main():
    """Run the development server."""
    app = create_app()
    app.run(
        host=os.environ.get("TRANSLATEBRIDGE_HOST", "0.0.0.0"),
        port=int(os.environ.get("TRANSLATEBRIDGE_PORT", "5500")),
        debug=os.environ.get("TRANSLATEBRIDGE_DEBUG", "").lower() in ("1", "true", "yes"),
    )


__all__ = ["create_app", "main"]
