"""
Actor resolution and role checks.

Authentication itself lives outside this service. Requests arrive with a
bearer token; the default resolver looks it up in the ACTOR_TOKENS setting.
Deployments swap `get_current_actor` through FastAPI dependency overrides.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header

from app.core.config import Settings, get_settings
from app.core.errors import Unauthorized


@dataclass(frozen=True)
class Actor:
    """Authenticated operator performing a mutation or rollback."""
    id: str
    name: str
    role: str


def resolve_token(token: str, settings: Settings) -> Optional[Actor]:
    """Map a bearer token to an actor, or None when unknown."""
    entry = settings.actor_tokens.get(token)
    if not entry:
        return None
    return Actor(
        id=entry.get("id", ""),
        name=entry.get("name", entry.get("id", "")),
        role=entry.get("role", "")
    )


async def get_current_actor(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings)
) -> Optional[Actor]:
    """Dependency returning the calling actor, or None if unauthenticated."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return resolve_token(authorization[len("Bearer "):].strip(), settings)


def require_actor(actor: Optional[Actor]) -> Actor:
    """Any authenticated actor."""
    if actor is None:
        raise Unauthorized("Authentication required")
    return actor


def require_privileged(actor: Optional[Actor], settings: Optional[Settings] = None) -> Actor:
    """Authenticated actor holding one of the privileged roles."""
    settings = settings or get_settings()
    if actor is None or actor.role not in settings.privileged_roles:
        raise Unauthorized("Unauthorized")
    return actor
