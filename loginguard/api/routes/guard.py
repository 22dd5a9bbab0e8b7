from fastapi import APIRouter, Depends, Response
from loginguard.api.dependencies import get_login_guard
from loginguard.schemas.attempt import AttemptReport
from loginguard.schemas.guard import LoginCheck, LoginDecision, LoginOutcome
from loginguard.security.login_guard import LoginGuard

router = APIRouter(prefix="/api/security", tags=["login-guard"])


@router.post("/check", response_model=LoginDecision)
async def check_login(
    payload: LoginCheck,
    response: Response,
    guard: LoginGuard = Depends(get_login_guard)
):
    decision = guard.check(payload.identifier, payload.identifier_type, payload.ip_address)

    if not decision.allowed:
        response.status_code = decision.status_code
        if decision.retry_after_seconds is not None:
            response.headers["Retry-After"] = str(decision.retry_after_seconds)
    elif decision.delay_ms:
        response.headers["Retry-After"] = str(max(1, decision.delay_ms // 1000))

    return decision


@router.post("/attempts", response_model=LoginOutcome)
async def report_attempt(
    payload: AttemptReport,
    guard: LoginGuard = Depends(get_login_guard)
):
    return guard.report(
        payload.identifier,
        payload.identifier_type,
        payload.success,
        ip_address=payload.ip_address,
        user_agent=payload.user_agent,
        metadata=payload.metadata
    )
