from __future__ import annotations

from functools import wraps
from typing import Callable, TypeVar, Any, cast
from flask import current_app, g, request

from utils.errors import ApiError, AuthError, ValidationError

F = TypeVar("F", bound=Callable[..., Any])


def request_payload() -> dict[str, Any]:
    """JSON body, or form fields for urlencoded posts."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", code="InvalidValue")
    return data


def bearer_token(header: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header, or None."""
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def token_required(func: F) -> F:
    """Decorator that requires a valid admin session token.

    - Missing or malformed ``Authorization`` header -> 401 ``MissingToken``.
    - Token rejected by the credential verifier -> 401 ``InvalidToken``.
    - Otherwise the decoded identity is stored on ``g.identity``.

    The verifier is looked up on ``current_app.extensions`` so this works on
    any app that registered one.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = bearer_token(request.headers.get("Authorization"))
        if token is None:
            raise AuthError("Access denied. No token provided.", code="MissingToken")
        verifier = current_app.extensions["credential_verifier"]
        try:
            g.identity = verifier.verify(token)
        except ApiError as exc:
            current_app.logger.warning("Rejected token on %s: %s", request.path, exc.message)
            raise AuthError("Invalid token", code="InvalidToken") from exc
        return func(*args, **kwargs)

    return cast(F, wrapper)
