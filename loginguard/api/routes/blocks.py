from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from loginguard.api.dependencies import get_login_guard
from loginguard.models.types import IdentifierType
from loginguard.schemas.block import BlockCreate, BlockResult, BlockStatus, SecurityBlockResponse
from loginguard.security.login_guard import LoginGuard

router = APIRouter(prefix="/api/security/blocks", tags=["security-blocks"])


@router.get("", response_model=list[SecurityBlockResponse])
async def get_active_blocks(
    identifier_type: Optional[IdentifierType] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    guard: LoginGuard = Depends(get_login_guard)
):
    return guard.blocks.active_blocks(identifier_type, skip=skip, limit=limit)


@router.get("/{identifier_type}/{identifier}", response_model=BlockStatus)
async def get_block_status(
    identifier_type: IdentifierType,
    identifier: str,
    guard: LoginGuard = Depends(get_login_guard)
):
    return guard.blocks.is_blocked(identifier, identifier_type)


@router.post("", response_model=BlockResult, status_code=status.HTTP_201_CREATED)
async def block_identifier(
    block_data: BlockCreate,
    guard: LoginGuard = Depends(get_login_guard)
):
    result = guard.blocks.block_identifier(
        block_data.identifier,
        block_data.identifier_type,
        reason=block_data.reason,
        duration=block_data.duration,
        severity=block_data.severity,
        blocked_by=block_data.blocked_by,
        metadata=block_data.metadata
    )

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not record block"
        )

    return result


@router.delete("/{identifier_type}/{identifier}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_identifier(
    identifier_type: IdentifierType,
    identifier: str,
    guard: LoginGuard = Depends(get_login_guard)
):
    if not guard.blocks.unblock(identifier, identifier_type):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active block for identifier"
        )

    return None
