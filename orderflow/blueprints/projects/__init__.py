"""
Projects blueprint package.

The actual routes and logic are in routes.py.
"""

from .routes import projects_bp  # noqa: F401
