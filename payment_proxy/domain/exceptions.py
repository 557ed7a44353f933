"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class RiskScoringError(DomainException):
    """The remote risk model could not produce an assessment"""

    pass


class RemoteCallError(RiskScoringError):
    """Risk model call failed: network error, timeout or non-2xx status"""

    pass


class MalformedResponseError(RiskScoringError):
    """Risk model answered with content that is not a valid assessment"""

    def __init__(self, message: str, content: str | None = None):
        super().__init__(message)
        self.content = content


class CircuitOpenError(DomainException):
    """Circuit breaker is open and no fallback is configured"""

    def __init__(self, name: str):
        super().__init__(f"Circuit breaker {name} is OPEN - service unavailable")
        self.name = name


class ConfigLoadError(DomainException):
    """Fraud rule configuration is missing or malformed"""

    pass


class AuthenticationError(DomainException):
    """Bearer credential is missing, invalid or expired"""

    pass
