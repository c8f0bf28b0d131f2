"""Authentication token model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class AuthToken(BaseModel):
    """Token returned after successful login.

    Parameters
    ----------
    access_token : str
        Token sent with every authenticated request.
    user_id : str
        The authenticated user's ID.
    ttl : float or None
        Lifetime in seconds announced by the server, if any.
    raw : dict
        Full login response for access to additional fields.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    user_id: str
    ttl: float | None = None
    raw: dict[str, Any]
