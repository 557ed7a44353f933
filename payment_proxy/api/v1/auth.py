"""POST /v1/auth/token - issue bearer tokens to API clients"""

import logging
from fastapi import APIRouter, Depends, HTTPException

from payment_proxy.api.v1.schemas import TokenRequest, TokenResponse
from payment_proxy.api.dependencies import get_token_service
from payment_proxy.infrastructure.security.tokens import TokenService

router = APIRouter()


@router.post("/auth/token", response_model=TokenResponse)
def create_token(
    request_body: TokenRequest,
    tokens: TokenService = Depends(get_token_service),
):
    """Exchange client credentials for a JWT bearer token"""
    if not tokens.validate_client_credentials(request_body.client_id, request_body.client_secret):
        logging.warning("Rejected client credentials", extra={"client_id": request_body.client_id})
        raise HTTPException(status_code=401, detail="Invalid client credentials")

    token = tokens.create_token(request_body.client_id)
    logging.info("Token generated successfully", extra={"client_id": request_body.client_id})

    return TokenResponse(token=token, expires_in=tokens.expires_minutes * 60)
