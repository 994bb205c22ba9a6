"""
orderflow/blueprints/entries/__init__.py

Blueprint package export.

IMPORTANT:
- Must expose entries_bp for app factory registration.
- Keep import minimal to avoid side effects.
"""

from __future__ import annotations

from .routes import entries_bp  # noqa: F401
