from fastapi import APIRouter, Depends, HTTPException, Request, status
from loginguard.api.dependencies import get_login_guard
from loginguard.schemas.captcha import ChallengeIssued, ChallengeProof, ChallengeRequest, ChallengeVerification
from loginguard.security.login_guard import LoginGuard

router = APIRouter(prefix="/api/security/captcha", tags=["captcha"])


@router.post("/issue", response_model=ChallengeIssued, status_code=status.HTTP_201_CREATED)
async def issue_challenge(
    challenge_request: ChallengeRequest,
    guard: LoginGuard = Depends(get_login_guard)
):
    challenge = guard.captcha.issue_challenge(
        challenge_request.identifier,
        challenge_request.identifier_type,
        challenge_request.challenge_type
    )

    if challenge is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not issue challenge"
        )

    return challenge


@router.post("/verify", response_model=ChallengeVerification)
async def verify_challenge(
    proof: ChallengeProof,
    request: Request,
    guard: LoginGuard = Depends(get_login_guard)
):
    remote_ip = proof.remote_ip
    if remote_ip is None:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            remote_ip = forwarded.split(",")[0].strip()
        elif request.client:
            remote_ip = request.client.host

    return guard.captcha.verify_challenge(proof.token, proof.proof, remote_ip)
