"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from lossy_mint.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str | None:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str | None = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not admin_token or not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/sessions/{session_id}", dependencies=[Depends(require_admin)])
async def session_detail(session_id: str, request: Request) -> dict[str, object]:
    """Return the stored session record."""
    container: AppContainer = request.app.state.container
    session = await container.session_store.get(session_id)
    return session.to_record()


@router.get("/addresses/{address}", dependencies=[Depends(require_admin)])
async def session_by_address(address: str, request: Request) -> dict[str, object]:
    """Return the session bound to an escrow address."""
    container: AppContainer = request.app.state.container
    session = await container.session_store.find_by_address(address)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return session.to_record()


@router.post("/sessions/{session_id}/retry-mint", dependencies=[Depends(require_admin)])
async def retry_mint(session_id: str, request: Request) -> dict[str, object]:
    """Poll a session, allowing a failed ``paid`` mint to run again."""
    container: AppContainer = request.app.state.container
    result = await container.session_controller.poll(session_id, retry_paid=True)
    return {"status": result.status.value, "session": result.session.to_record()}


@router.post(
    "/sessions/{session_id}/retry-sweep", dependencies=[Depends(require_admin)]
)
async def retry_sweep(session_id: str, request: Request) -> dict[str, object]:
    """Sweep a minted session whose earlier sweep failed."""
    container: AppContainer = request.app.state.container
    session = await container.session_controller.retry_sweep(session_id)
    return {"status": session.status.value, "session": session.to_record()}
