from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from loginguard.api.dependencies import get_login_guard
from loginguard.models.types import IdentifierType
from loginguard.schemas.override import RateLimitOverrideCreate, RateLimitOverrideResponse
from loginguard.security.login_guard import LoginGuard

router = APIRouter(prefix="/api/security/overrides", tags=["rate-limit-overrides"])


@router.get("", response_model=list[RateLimitOverrideResponse])
async def get_overrides(
    active_only: bool = True,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    guard: LoginGuard = Depends(get_login_guard)
):
    return guard.overrides.list_overrides(active_only=active_only, skip=skip, limit=limit)


@router.get("/{identifier_type}/{identifier}", response_model=RateLimitOverrideResponse)
async def get_effective_override(
    identifier_type: IdentifierType,
    identifier: str,
    endpoint: Optional[str] = None,
    guard: LoginGuard = Depends(get_login_guard)
):
    override = guard.overrides.get_override(identifier, identifier_type, endpoint)

    if override is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No override for identifier"
        )

    return override


@router.put("", response_model=RateLimitOverrideResponse)
async def set_override(
    override_data: RateLimitOverrideCreate,
    guard: LoginGuard = Depends(get_login_guard)
):
    return guard.overrides.set_override(
        override_data.identifier,
        override_data.identifier_type,
        override_data.max_requests,
        override_data.window_minutes,
        endpoint_pattern=override_data.endpoint_pattern,
        reason=override_data.reason,
        expires_at=override_data.expires_at,
        created_by=override_data.created_by
    )


@router.delete("/{identifier_type}/{identifier}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_override(
    identifier_type: IdentifierType,
    identifier: str,
    endpoint_pattern: Optional[str] = None,
    guard: LoginGuard = Depends(get_login_guard)
):
    if not guard.overrides.remove_override(identifier, identifier_type, endpoint_pattern):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Override not found"
        )

    return None
