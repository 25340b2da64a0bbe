"""Structured error taxonomy for the agent engine."""
#
from enum import Enum
from typing import Dict, Any, Optional
# PURPOSE:
# Gives every failure the engine knows about a searchable code, a readable
# message and an optional details dictionary.
#
# ERROR CODE FORMAT:
# - TOOL_XXX: Capability lookup and execution errors
# - AI_XXX: Reasoning oracle errors
# - RUN_XXX: Orchestration misuse (bad goal, illegal status change)
# - CONFIG_XXX: Configuration errors
#
# PROPAGATION:
# Oracle errors never leave the oracle adapter; capability errors never leave
# the orchestrator (they become Step.error). Only misuse by the caller (an
# invalid goal) is raised out of run_orchestration.
#
# USAGE:
#   from revcore.errors import RevError, ErrorCode
#
#   raise RevError(
#       ErrorCode.RUN_INVALID_GOAL,
#       "Goal target must not be empty",
#       details={"objective": "Find all API endpoints"}
#   )
#


class ErrorCode(Enum):
    # Capability Errors
    TOOL_NOT_FOUND = "TOOL_001"
    TOOL_UNAVAILABLE = "TOOL_002"
    TOOL_TIMEOUT = "TOOL_003"
    TOOL_EXEC_FAILED = "TOOL_004"

    # Oracle Errors
    AI_OFFLINE = "AI_001"
    AI_TIMEOUT = "AI_002"
    AI_INVALID_RESPONSE = "AI_003"
    AI_AUTH_FAILED = "AI_004"
    AI_RATE_LIMIT_EXCEEDED = "AI_005"

    # Run Errors
    RUN_INVALID_GOAL = "RUN_001"
    RUN_INVALID_TRANSITION = "RUN_002"

    # Config Errors
    CONFIG_INVALID = "CONFIG_001"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


class RevError(Exception):
    """
    Base exception with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "TOOL_001")
        message: Human-readable error message
        details: Optional dictionary with additional context
    """

    default_code: ErrorCode = ErrorCode.SYSTEM_INTERNAL_ERROR

    def __init__(
        self,
        code: Optional[ErrorCode] = None,
        message: str = "",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{self.code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for JSON serialization.

        Returns:
            Dictionary with code, message and details
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }

    def to_json(self) -> str:
        """Serialize error to JSON string."""
        import json
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RevError":
        """
        Deserialize error from dictionary.

        Args:
            data: Dictionary with code, message, details

        Returns:
            RevError instance
        """
        return RevError(ErrorCode(data["code"]), data["message"], data.get("details", {}))


# ============================================================================
# Capability Errors
# ============================================================================

class CapabilityNotFound(RevError):
    """An Action referenced a capability name nobody registered."""

    default_code = ErrorCode.TOOL_NOT_FOUND

    def __init__(self, name: str):
        super().__init__(
            message=f"Tool {name} not available (not found in registry)",
            details={"capability": name},
        )
        self.name = name


class CapabilityUnavailable(RevError):
    """The capability exists but the host cannot provide it right now."""

    default_code = ErrorCode.TOOL_UNAVAILABLE

    def __init__(self, name: str, reason: str = ""):
        message = f"Tool {name} not available on this host"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message=message, details={"capability": name, "reason": reason})
        self.name = name


class CapabilityTimeout(RevError):
    default_code = ErrorCode.TOOL_TIMEOUT

    def __init__(self, name: str, timeout: float):
        super().__init__(
            message=f"Tool {name} timed out after {timeout}s",
            details={"capability": name, "timeout": timeout},
        )
        self.name = name


# ============================================================================
# Oracle Errors
# ============================================================================

class OracleError(RevError):
    """Any failure talking to the reasoning oracle."""

    default_code = ErrorCode.AI_INVALID_RESPONSE

    def __init__(self, message: str, code: Optional[ErrorCode] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class OracleUnavailable(OracleError):
    default_code = ErrorCode.AI_OFFLINE


class AuthenticationError(OracleError):
    default_code = ErrorCode.AI_AUTH_FAILED


# ============================================================================
# Run Errors
# ============================================================================

class InvalidTransition(RevError):
    """A Run was asked to move to a status its state machine forbids."""

    default_code = ErrorCode.RUN_INVALID_TRANSITION

    def __init__(self, current: str, requested: str):
        super().__init__(
            message=f"Illegal status transition {current} -> {requested}",
            details={"current": current, "requested": requested},
        )


# ============================================================================
# Convenience Functions
# ============================================================================

def handle_error(error: Exception, context: Optional[str] = None) -> RevError:
    """
    Convert a generic exception to a RevError.

    Args:
        error: The original exception
        context: Optional context string (e.g., "while dispatching dom-analyzer")

    Returns:
        RevError with appropriate code and message
    """
    if isinstance(error, RevError):
        return error

    error_type = type(error).__name__

    if "Timeout" in error_type or "timeout" in str(error).lower():
        code = ErrorCode.TOOL_TIMEOUT
    elif "Connection" in error_type or "connection" in str(error).lower():
        code = ErrorCode.TOOL_UNAVAILABLE
    else:
        code = ErrorCode.TOOL_EXEC_FAILED

    message = str(error) or error_type
    if context:
        message = f"{context}: {message}"

    return RevError(
        code=code,
        message=message,
        details={
            "original_type": error_type,
            "original_message": str(error),
        },
    )


__all__ = [
    "ErrorCode",
    "RevError",
    "CapabilityNotFound",
    "CapabilityUnavailable",
    "CapabilityTimeout",
    "OracleError",
    "OracleUnavailable",
    "AuthenticationError",
    "InvalidTransition",
    "handle_error",
]
