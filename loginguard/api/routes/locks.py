from fastapi import APIRouter, Depends, HTTPException, Query, status
from loginguard.api.dependencies import get_login_guard
from loginguard.models.types import IdentifierType
from loginguard.schemas.lockout import AccountLockResponse, LockCreate, LockResult, LockStatus, UnlockResult
from loginguard.security.login_guard import LoginGuard

router = APIRouter(prefix="/api/security/locks", tags=["account-locks"])


@router.get("", response_model=list[AccountLockResponse])
async def get_active_locks(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    guard: LoginGuard = Depends(get_login_guard)
):
    return guard.lockout.active_locks(skip=skip, limit=limit)


@router.get("/{identifier_type}/{identifier}", response_model=LockStatus)
async def get_lock_status(
    identifier_type: IdentifierType,
    identifier: str,
    guard: LoginGuard = Depends(get_login_guard)
):
    return guard.lockout.check_and_enforce_lock(identifier, identifier_type)


@router.post("", response_model=LockResult, status_code=status.HTTP_201_CREATED)
async def lock_account(
    lock_data: LockCreate,
    guard: LoginGuard = Depends(get_login_guard)
):
    result = guard.lockout.lock_account(
        lock_data.identifier,
        lock_data.identifier_type,
        reason=lock_data.reason,
        duration=lock_data.duration,
        locked_by=lock_data.locked_by
    )

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not record account lock"
        )

    return result


@router.delete("/{identifier_type}/{identifier}", response_model=UnlockResult)
async def unlock_account(
    identifier_type: IdentifierType,
    identifier: str,
    guard: LoginGuard = Depends(get_login_guard)
):
    result = guard.lockout.unlock_account(identifier, identifier_type)

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not release account lock"
        )

    return result
