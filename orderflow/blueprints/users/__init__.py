"""
Users blueprint package.

The actual routes and logic are in routes.py.
"""

from .routes import users_bp  # noqa: F401
