"""
Partners blueprint package.

The actual routes and logic are in routes.py.
"""

from .routes import partners_bp  # noqa: F401
