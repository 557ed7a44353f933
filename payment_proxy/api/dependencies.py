"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from payment_proxy.domain.exceptions import AuthenticationError
from payment_proxy.domain.fraud_rules import FraudRuleEngine
from payment_proxy.infrastructure.cache.redis_cache import RedisCache
from payment_proxy.infrastructure.security.tokens import TokenService
from payment_proxy.services.container import Services
from payment_proxy.services.processor import TransactionProcessor

bearer_scheme = HTTPBearer(auto_error=False)


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_services(request: Request) -> Services:
    """Process-wide components built at startup"""
    return request.app.state.services


def get_processor(services: Services = Depends(get_services)) -> TransactionProcessor:
    return services.processor


def get_rule_engine(services: Services = Depends(get_services)) -> FraudRuleEngine:
    return services.rule_engine


def get_cache(services: Services = Depends(get_services)) -> RedisCache:
    return services.cache


def get_token_service(services: Services = Depends(get_services)) -> TokenService:
    return services.tokens


def get_current_client(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> str:
    """Require a valid bearer token and return the client id it was issued to"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = tokens.verify_token(credentials.credentials)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload["client_id"]
