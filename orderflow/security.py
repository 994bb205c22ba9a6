"""
orderflow/security.py

Access control helpers for the JSON API.

Key rules:
- Clients are never trusted; every permission check is server-side.
- Unauthenticated requests are rejected (401) before the access policy runs.
- Role checks go through orderflow.policy only. No inline role comparisons
  in views.

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask_login import current_user

from .errors import AuthenticationError
from .policy import Actor, Operation, authorize


def current_actor() -> Actor:
    """The logged-in user as an Actor. Raises AuthenticationError when anonymous."""
    if not current_user.is_authenticated:
        raise AuthenticationError("Login required")
    return Actor.from_user(current_user)


def requires(operation: Operation) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator factory: authenticate, then consult the access policy for operation.

    Usage:
        @entries_bp.route("/<int:entry_id>/po", methods=["PUT"])
        @requires(Operation.SET_PO)
        def set_po(entry_id): ...
    """
    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            actor = current_actor()
            authorize(actor.role, operation)
            return view_func(*args, **kwargs)

        return wrapper

    return decorator


def login_required_json(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: any authenticated role (no policy operation attached)."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        current_actor()
        return view_func(*args, **kwargs)

    return wrapper
