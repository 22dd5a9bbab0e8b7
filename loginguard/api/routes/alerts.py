from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from loginguard.api.dependencies import get_login_guard
from loginguard.schemas.alert import AlertReview, SecurityAlertResponse
from loginguard.security.login_guard import LoginGuard

router = APIRouter(prefix="/api/security/alerts", tags=["security-alerts"])


@router.get("", response_model=list[SecurityAlertResponse])
async def get_alerts(
    identifier: Optional[str] = None,
    alert_type: Optional[str] = None,
    reviewed: Optional[bool] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    guard: LoginGuard = Depends(get_login_guard)
):
    return guard.alerts.list_alerts(
        identifier=identifier,
        alert_type=alert_type,
        reviewed=reviewed,
        skip=skip,
        limit=limit
    )


@router.post("/{alert_id}/review", response_model=SecurityAlertResponse)
async def review_alert(
    alert_id: int,
    review: AlertReview,
    guard: LoginGuard = Depends(get_login_guard)
):
    alert = guard.alerts.review_alert(alert_id, review.reviewed_by, review.action_taken)

    if alert is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found"
        )

    return alert
