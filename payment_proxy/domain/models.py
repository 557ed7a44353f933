"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from payment_proxy.utils.ids import generate_transaction_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"  # initial, and "manual review" once decided
    PROCESSING = "processing"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ConditionOperator(str, Enum):
    GT = "gt"
    LT = "lt"
    EQ = "eq"
    CONTAINS = "contains"
    REGEX = "regex"


class RuleAction(str, Enum):
    FLAG = "flag"
    BLOCK = "block"
    REVIEW = "review"


class RiskTolerance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class Transaction:
    """One payment attempt flowing through the proxy"""

    id: str
    amount: int  # smallest currency unit
    currency: str
    source: str
    email: str
    status: TransactionStatus = TransactionStatus.PENDING
    provider: str | None = None
    risk_score: float | None = None
    explanation: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, amount: int, currency: str, source: str, email: str) -> "Transaction":
        """Build a new PENDING transaction with a fresh identifier"""
        now = utcnow()
        return cls(
            id=generate_transaction_id(),
            amount=amount,
            currency=currency,
            source=source,
            email=email,
            created_at=now,
            updated_at=now,
        )

    def apply_decision(
        self,
        status: TransactionStatus,
        risk_score: float,
        provider: str,
        explanation: str,
    ) -> None:
        if not 0.0 <= risk_score <= 1.0:
            raise ValueError(f"Risk score {risk_score} outside [0, 1]")
        self.status = status
        self.risk_score = risk_score
        self.provider = provider
        self.explanation = explanation
        self.updated_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount,
            "currency": self.currency,
            "source": self.source,
            "email": self.email,
            "status": self.status.value,
            "provider": self.provider,
            "risk_score": self.risk_score,
            "explanation": self.explanation,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        return cls(
            id=data["id"],
            amount=data["amount"],
            currency=data["currency"],
            source=data["source"],
            email=data["email"],
            status=TransactionStatus(data["status"]),
            provider=data.get("provider"),
            risk_score=data.get("risk_score"),
            explanation=data.get("explanation"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass(frozen=True)
class RiskFactor:
    """Single weighted contribution to a risk score"""

    factor: str
    weight: float
    description: str


@dataclass(frozen=True)
class RiskAssessment:
    """Output of one scoring attempt, model based or fallback"""

    transaction_id: str
    risk_score: float
    risk_level: RiskLevel
    explanation: str
    factors: List[RiskFactor] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    assessed_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys the risk model speaks"""
        return {
            "transactionId": self.transaction_id,
            "riskScore": self.risk_score,
            "riskLevel": self.risk_level.value,
            "explanation": self.explanation,
            "factors": [
                {"factor": f.factor, "weight": f.weight, "description": f.description}
                for f in self.factors
            ],
            "recommendations": list(self.recommendations),
            "assessedAt": self.assessed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskAssessment":
        return cls(
            transaction_id=data["transactionId"],
            risk_score=float(data["riskScore"]),
            risk_level=RiskLevel(data["riskLevel"]),
            explanation=data["explanation"],
            factors=[
                RiskFactor(factor=f["factor"], weight=float(f["weight"]), description=f["description"])
                for f in data.get("factors", [])
            ],
            recommendations=list(data.get("recommendations", [])),
            assessed_at=datetime.fromisoformat(data["assessedAt"]),
        )


@dataclass(frozen=True)
class FraudCondition:
    field: str
    operator: ConditionOperator
    value: Any
    description: str


@dataclass(frozen=True)
class FraudRule:
    """Named, weighted condition set; all conditions must hold to match"""

    name: str
    enabled: bool
    weight: float
    conditions: List[FraudCondition]
    action: RuleAction


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    priority: int  # lower is tried first
    risk_tolerance: RiskTolerance
    enabled: bool = True


@dataclass(frozen=True)
class RiskThresholds:
    low: float
    medium: float
    high: float
    critical: float


@dataclass(frozen=True)
class FraudRuleConfig:
    """Complete declarative rule set, swapped as a whole on reload"""

    rules: List[FraudRule]
    providers: List[ProviderConfig]
    thresholds: RiskThresholds


@dataclass
class RuleEvaluation:
    """Result of running the fraud rules against one transaction"""

    score: float
    factors: List[RiskFactor]
    blocked_rules: List[str]
