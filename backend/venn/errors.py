"""
Engine Errors
=============

Typed error taxonomy for the set-algebra engine.

Inside the engine every failure is raised as a VennError subclass.
The boundary service (services/diagram_service.py) catches these and
returns them as result values, so callers see the code and message
verbatim and never an exception.

Usage:
    from venn.errors import SetNotFound, ErrorCode

    try:
        diagram.delete_set("Math")
    except SetNotFound as e:
        assert e.code == ErrorCode.SET_NOT_FOUND
"""

from enum import Enum
from typing import Any, Dict, Iterable, Optional


class ErrorCode(Enum):
    """Stable error identifiers surfaced to the calling layer."""
    INVALID_ELEMENT_FORMAT = "InvalidElementFormat"
    DUPLICATE_ELEMENT = "DuplicateElement"
    ELEMENT_NOT_FOUND = "ElementNotFound"
    SET_NOT_FOUND = "SetNotFound"
    DUPLICATE_SET_NAME = "DuplicateSetName"
    EMPTY_NAME = "EmptyName"
    DANGLING_MEMBERSHIP_REFERENCE = "DanglingMembershipReference"
    RULE_TYPE_MISMATCH = "RuleTypeMismatch"
    UNKNOWN_OPERATION = "UnknownOperation"
    INVALID_OPERANDS = "InvalidOperands"
    INVALID_RULE_SPEC = "InvalidRuleSpec"
    SET_LIMIT_EXCEEDED = "SetLimitExceeded"
    STALE_VERSION = "StaleVersion"
    UNKNOWN_TEMPLATE = "UnknownTemplate"


# =============================================================================
# Exceptions
# =============================================================================

class VennError(Exception):
    """Base class for all engine errors."""
    code: ErrorCode = ErrorCode.INVALID_ELEMENT_FORMAT

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        data = {"code": self.code.value, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class InvalidElementFormat(VennError):
    """Raised when a raw value does not have the shape of the diagram's kind."""
    code = ErrorCode.INVALID_ELEMENT_FORMAT


class DuplicateElement(VennError):
    """Raised when an element key already exists in the universe."""
    code = ErrorCode.DUPLICATE_ELEMENT


class ElementNotFound(VennError):
    """Raised when a key does not resolve to a universe element."""
    code = ErrorCode.ELEMENT_NOT_FOUND


class SetNotFound(VennError):
    """Raised when a named set does not exist in the diagram."""
    code = ErrorCode.SET_NOT_FOUND


class DuplicateSetName(VennError):
    code = ErrorCode.DUPLICATE_SET_NAME


class EmptyName(VennError):
    code = ErrorCode.EMPTY_NAME


class DanglingMembershipReference(VennError):
    """Raised when a membership update references keys outside the universe."""
    code = ErrorCode.DANGLING_MEMBERSHIP_REFERENCE

    def __init__(self, set_name: str, missing: Iterable[str]):
        missing = sorted(missing)
        super().__init__(
            f"Set '{set_name}' references unknown elements: {', '.join(missing)}",
            details={"set": set_name, "missing": missing},
        )


class RuleTypeMismatch(VennError):
    """Raised when a rule targets a different element kind than the universe."""
    code = ErrorCode.RULE_TYPE_MISMATCH


class UnknownOperation(VennError):
    code = ErrorCode.UNKNOWN_OPERATION


class InvalidOperands(VennError):
    """Raised when an operation receives the wrong number of operands."""
    code = ErrorCode.INVALID_OPERANDS


class InvalidRuleSpec(VennError):
    """Raised when a rule payload cannot be turned into a typed rule."""
    code = ErrorCode.INVALID_RULE_SPEC


class SetLimitExceeded(VennError):
    """Raised when the number of named sets exceeds the partition ceiling."""
    code = ErrorCode.SET_LIMIT_EXCEEDED


class StaleVersion(VennError):
    """Raised when a writer's expected version no longer matches the diagram."""
    code = ErrorCode.STALE_VERSION

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Diagram changed since version {expected} (now at {actual})",
            details={"expected": expected, "actual": actual},
        )


class UnknownTemplate(VennError):
    code = ErrorCode.UNKNOWN_TEMPLATE
