"""Role-based access demonstration endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from tokengate.api.auth import get_current_principal, require_authority
from tokengate.schemas.auth import MessageResponse, PrincipalResponse
from tokengate.services.identity import Principal, Roles

router = APIRouter(prefix="/home", tags=["home"])


def _stamp() -> str:
    return datetime.now(UTC).isoformat()


@router.get("/free", response_model=MessageResponse)
async def get_free() -> MessageResponse:
    """Open to everyone, authenticated or not."""
    return MessageResponse(message=f"Hello free: {_stamp()}")


@router.get("/user", response_model=MessageResponse)
async def get_user(
    principal: Principal = Depends(require_authority(Roles.ROLE_USER.value)),
) -> MessageResponse:
    return MessageResponse(message=f"Hello {principal.subject}: {_stamp()}")


@router.get("/admin", response_model=MessageResponse)
async def get_admin(
    principal: Principal = Depends(require_authority(Roles.ROLE_ADMIN.value)),
) -> MessageResponse:
    return MessageResponse(message=f"Hello admin {principal.subject}: {_stamp()}")


@router.get("/me", response_model=PrincipalResponse)
async def get_me(principal: Principal = Depends(get_current_principal)) -> PrincipalResponse:
    """The caller's subject and authorities."""
    return PrincipalResponse(subject=principal.subject, authorities=list(principal.authorities))
