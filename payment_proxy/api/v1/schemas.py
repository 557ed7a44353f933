"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class TokenRequest(BaseModel):
    """Request body for POST /v1/auth/token"""

    client_id: str = Field(..., min_length=3, max_length=50)
    client_secret: str = Field(..., min_length=6, max_length=100)


class TokenResponse(BaseModel):
    token: str
    expires_in: int = Field(..., description="Token lifetime in seconds")
    token_type: str = "Bearer"


class PaymentRequest(BaseModel):
    """Request body for POST /v1/payments/usage"""

    amount: int = Field(..., gt=0, le=1_000_000, description="Amount in the smallest currency unit")
    currency: Literal["USD", "EUR", "GBP", "CAD"]
    source: str = Field(..., min_length=3, max_length=100, description="Opaque payment source token")
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)


class PaymentResponse(BaseModel):
    """Response for POST /v1/payments/usage"""

    transaction_id: str
    provider: str
    status: str
    risk_score: float
    explanation: str


class PaymentStatusResponse(BaseModel):
    """Response for GET /v1/payments/{transaction_id}"""

    transaction_id: str
    status: str
    amount: int
    currency: str
    provider: Optional[str] = None
    risk_score: Optional[float] = None
    created_at: datetime
    updated_at: datetime


class RiskFactorSchema(BaseModel):
    factor: str
    weight: float
    description: str


class RuleEvaluationResponse(BaseModel):
    """Response for POST /v1/rules/evaluate (dry run, no model call)"""

    score: float
    factors: List[RiskFactorSchema]
    blocked_rules: List[str]
    provider: str
    status: str


class RuleReloadResponse(BaseModel):
    rules_count: int
    providers_count: int


class PaymentHistoryResponse(BaseModel):
    """Response for GET /v1/payments"""

    client_id: str
    transactions: List[PaymentStatusResponse]
