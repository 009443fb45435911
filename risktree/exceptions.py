"""
Exceptions for RiskTree.

Structured errors with codes and recovery hints. Only caller mistakes raise:
a computation that cannot produce samples returns ``None`` instead.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Standard error codes for RiskTree."""
    # General errors (1xxx)
    UNKNOWN_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"
    CONFIGURATION_ERROR = "E1002"

    # Model structure errors (2xxx)
    STRUCTURE_ERROR = "E2000"
    CHILD_NOT_ALLOWED = "E2001"
    CHILD_LIMIT_REACHED = "E2002"
    FOREIGN_REFERENCE = "E2003"
    NOT_FOUND = "E2004"
    DUPLICATE_MODEL = "E2005"

    # Persistence errors (3xxx)
    DESERIALIZATION_ERROR = "E3000"
    UNTRUSTED_TYPE = "E3001"
    UNSUPPORTED_SCHEMA = "E3002"

    # Optimization errors (4xxx)
    OPTIMIZATION_CANCELLED = "E4000"
    TOO_MANY_CANDIDATES = "E4001"


@dataclass
class RecoveryHint:
    """A hint for recovering from an error."""
    action: str
    description: str


@dataclass
class ErrorContext:
    """Context information for an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    model_id: Optional[str] = None
    node_id: Optional[str] = None
    additional: dict[str, Any] = field(default_factory=dict)


class RiskTreeError(Exception):
    """
    Base exception for RiskTree.

    All custom exceptions inherit from this class.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        recovery_hint: Optional[RecoveryHint] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.recovery_hint = recovery_hint
        self.context = context or ErrorContext()
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging."""
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
            "timestamp": self.context.timestamp.isoformat(),
        }
        if self.recovery_hint:
            result["recovery"] = {
                "action": self.recovery_hint.action,
                "description": self.recovery_hint.description,
            }
        if self.context.model_id:
            result["model_id"] = self.context.model_id
        if self.context.node_id:
            result["node_id"] = self.context.node_id
        if self.context.additional:
            result["details"] = self.context.additional
        return result

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class DomainValidationError(RiskTreeError, ValueError):
    """A scalar is outside its domain: range points, percentiles, iterations."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs,
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            recovery_hint=RecoveryHint(
                action="fix_input",
                description="Provide a value inside the documented domain",
            ),
            **kwargs,
        )
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = str(self.value)
        return result


class StructuralError(RiskTreeError):
    """A tree operation would break the composition rules of a node kind."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.STRUCTURE_ERROR,
        **kwargs,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            recovery_hint=RecoveryHint(
                action="fix_structure",
                description="Check which child kinds the parent accepts",
            ),
            **kwargs,
        )


class ModelNotFoundError(RiskTreeError):
    """No model with the requested id is registered."""

    def __init__(self, model_id: str, **kwargs):
        super().__init__(
            message=f"Model {model_id} is not registered",
            error_code=ErrorCode.NOT_FOUND,
            context=ErrorContext(model_id=model_id),
            **kwargs,
        )
        self.model_id = model_id


class DeserializationError(RiskTreeError):
    """A persisted document is malformed or names a type outside the allowlist."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DESERIALIZATION_ERROR,
        **kwargs,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            recovery_hint=RecoveryHint(
                action="reject_document",
                description="The document was not loaded; verify its origin and format",
            ),
            **kwargs,
        )


class OptimizationError(RiskTreeError):
    """The mitigation search cannot be run as requested."""


class OptimizationCancelledError(OptimizationError):
    """The mitigation search was cancelled; enabled flags were restored."""

    def __init__(self, evaluated_subsets: int, **kwargs):
        super().__init__(
            message=f"Optimization cancelled after {evaluated_subsets} subsets",
            error_code=ErrorCode.OPTIMIZATION_CANCELLED,
            **kwargs,
        )
        self.evaluated_subsets = evaluated_subsets
