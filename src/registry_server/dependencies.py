"""FastAPI dependency injection — provides DB sessions, services, and caller identity.

``get_db()`` wraps ``registry_db.engine.session_scope`` so every request runs
in one transaction.  Services and catalog are read from ``app.state``;
the caller comes from the gateway identity headers.
"""

import enum
import hmac
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from registry_db.engine import session_scope
from registry_forms.catalog import FormCatalogStore
from registry_forms.errors import BadRequestError, ForbiddenError
from registry_forms.gating import ModuleGatingResolver, parse_participant_id
from registry_forms.responses import FormResponseService
from registry_forms.versioning import FormVersionResolver


# ------------------------------------------------------------------
# Database session: transaction boundary lives here
# ------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One request, one transaction: committed when the route returns."""
    async with session_scope() as session:
        yield session


# ------------------------------------------------------------------
# Services & catalog: stashed on app.state by create_app / lifespan
# ------------------------------------------------------------------

def get_gating(request: Request) -> ModuleGatingResolver:
    return request.app.state.gating


def get_versions(request: Request) -> FormVersionResolver:
    return request.app.state.versions


def get_response_service(request: Request) -> FormResponseService:
    return request.app.state.responses


def get_catalog(request: Request) -> FormCatalogStore:
    """Return the FormCatalogStore singleton from ``app.state``."""
    return request.app.state.catalog


# ------------------------------------------------------------------
# Caller identity: injected by the trusted gateway
# ------------------------------------------------------------------

class CallerRole(str, enum.Enum):
    PARTICIPANT = "participant"
    COORDINATOR = "coordinator"
    ADMIN = "admin"


@dataclass(frozen=True)
class Caller:
    """Authenticated caller as asserted by the gateway headers."""

    user_id: str
    role: CallerRole
    participant_id: uuid.UUID | None = None

    def require_role(self, *roles: CallerRole) -> None:
        if self.role not in roles:
            raise ForbiddenError(f"Role {self.role.value} may not perform this action")

    def participant_scope(self, requested: object | None) -> uuid.UUID:
        """The participant id this caller may act on.

        Participants are always scoped to themselves; admins must name the
        participant; coordinators are refused.
        """
        if self.role == CallerRole.PARTICIPANT:
            if self.participant_id is None:
                raise ForbiddenError(f"User {self.user_id} has no participant record")
            return self.participant_id
        if self.role == CallerRole.ADMIN:
            if requested is None or requested == "":
                raise BadRequestError("participant_id is required")
            return parse_participant_id(requested)
        raise ForbiddenError(f"Role {self.role.value} may not access participant forms")


async def get_caller(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_user_role: str | None = Header(None, alias="X-User-Role"),
    x_participant_id: str | None = Header(None, alias="X-Participant-ID"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> Caller:
    """Build the caller from the ``X-User-*`` headers.

    Returns 401 if ``X-User-ID`` is missing.  The role defaults to
    ``participant``.

    When ``TRUSTED_PROXY_SECRET`` is configured, the request must also
    carry a matching ``X-Proxy-Secret`` header, proving the identity
    headers were injected by the gateway.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")

    # --- Proxy-secret validation (opt-in via TRUSTED_PROXY_SECRET) ---
    expected_secret: str | None = request.app.state.settings.trusted_proxy_secret
    if expected_secret:
        if not x_proxy_secret:
            raise HTTPException(
                status_code=403,
                detail="X-Proxy-Secret header is required",
            )
        # Constant-time comparison
        if not hmac.compare_digest(x_proxy_secret, expected_secret):
            raise HTTPException(status_code=403, detail="Invalid proxy secret")

    try:
        role = CallerRole((x_user_role or CallerRole.PARTICIPANT.value).lower())
    except ValueError:
        raise HTTPException(status_code=400, detail="Unknown X-User-Role") from None

    participant_id = None
    if x_participant_id:
        try:
            participant_id = uuid.UUID(x_participant_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid X-Participant-ID") from None

    return Caller(user_id=x_user_id, role=role, participant_id=participant_id)
