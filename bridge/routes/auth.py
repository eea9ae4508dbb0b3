"""
Wallet authentication for the storage network.

GET  /v1/auth/challenge?principal=0x...  -> {message}
POST /v1/auth/token {principal, signature} -> {token}
"""
from fastapi import APIRouter, Depends, Query

from ..deps import get_issuer
from ..models.auth import ChallengeResponse, TokenRequest, TokenResponse
from ..services.tokens import CapabilityTokenIssuer

router = APIRouter(prefix="/v1/auth", tags=["auth"])


@router.get("/challenge", response_model=ChallengeResponse)
def get_challenge(
    principal: str = Query(..., description="Wallet address"),
    issuer: CapabilityTokenIssuer = Depends(get_issuer),
):
    return ChallengeResponse(message=issuer.challenge(principal))


@router.post("/token", response_model=TokenResponse)
def issue_token(body: TokenRequest, issuer: CapabilityTokenIssuer = Depends(get_issuer)):
    return TokenResponse(token=issuer.issue(body.principal, body.signature))
