"""API Dependencies — caller resolution and per-request service wiring.

Invariants:
    - Caller comes only from X-Party-Id / X-Capabilities (set by the upstream gateway)
    - A missing or malformed X-Party-Id is a 401, never an anonymous caller
    - One SideEffectDispatcher per process (app.state), so its counters mean something

Design Decisions:
    - Header contract over token parsing: authentication happens upstream; the
      core only consumes the already-resolved capability flags
"""

from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from marketcore.config import get_settings
from marketcore.core.identity import Caller, parse_capabilities
from marketcore.infrastructure.database import get_session_factory
from marketcore.services.side_effect_dispatcher import SideEffectDispatcher


async def get_caller(
    x_party_id: str | None = Header(None),
    x_capabilities: str | None = Header(None),
) -> Caller:
    """Resolve the acting party from gateway headers."""
    if not x_party_id:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED, detail="Missing X-Party-Id header",
        )
    try:
        party_id = UUID(x_party_id)
    except ValueError:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED, detail="Malformed X-Party-Id header",
        )
    return Caller(party_id=party_id, capabilities=parse_capabilities(x_capabilities))


def get_dispatcher(request: Request) -> SideEffectDispatcher:
    """Process-wide dispatcher, created on first use if lifespan did not."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        dispatcher = SideEffectDispatcher(get_session_factory())
        request.app.state.dispatcher = dispatcher
    return dispatcher


def get_timeout() -> float:
    return get_settings().operation_timeout_seconds


CallerDep = Depends(get_caller)
DispatcherDep = Depends(get_dispatcher)
TimeoutDep = Depends(get_timeout)
