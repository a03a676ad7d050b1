"""
Registry Validation and Hardening Module

Error taxonomy, input validation, thread-safety primitives and invariant
enforcement shared by every registry component. It addresses:

1. Numeric error codes for every rejected operation
2. Input validation with sanitization
3. Thread-safety primitives
4. Ledger invariant enforcement

Security Model:
    - All inputs are untrusted until validated
    - All preconditions are checked before the first write
    - All state mutations are atomic or rolled back

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Set


# =============================================================================
# REGISTRY ERROR TYPES
# =============================================================================

class ErrorCode(IntEnum):
    """Numeric error taxonomy surfaced by every registry operation."""
    UNAUTHORIZED_ADMIN = 200
    UNAUTHORIZED_ASSET = 201
    INVALID_VALUE = 202
    INSUFFICIENT_VALUE = 203
    ALREADY_DEACTIVATED = 204
    VALUE_EXISTS = 205  # reserved, never raised


class RegistryError(Exception):
    """Base exception for rejected registry operations."""

    code: ErrorCode = ErrorCode.INVALID_VALUE

    def __init__(self, message: str, asset_id: Optional[int] = None):
        self.message = message
        self.asset_id = asset_id
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{int(self.code)}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "code": int(self.code),
            "error": self.code.name,
            "message": self.message,
        }
        if self.asset_id is not None:
            d["asset_id"] = self.asset_id
        return d


class UnauthorizedAdmin(RegistryError):
    """Caller is not the registry administrator."""
    code = ErrorCode.UNAUTHORIZED_ADMIN


class UnauthorizedAsset(RegistryError):
    """Caller is not entitled to act on the asset."""
    code = ErrorCode.UNAUTHORIZED_ASSET


class AssetNotFound(UnauthorizedAsset):
    """Asset id has no owner entry."""

    def __init__(self, asset_id: int):
        super().__init__(f"asset {asset_id} does not exist", asset_id=asset_id)


class InvalidValue(RegistryError):
    """Amount, length or other input is out of range."""
    code = ErrorCode.INVALID_VALUE


class AssetNotDeactivated(InvalidValue):
    """Operation requires a deactivated asset."""

    def __init__(self, asset_id: int):
        super().__init__(f"asset {asset_id} is not deactivated", asset_id=asset_id)


class InsufficientValue(RegistryError):
    """Asset value is lower than the requested reduction."""
    code = ErrorCode.INSUFFICIENT_VALUE


class AlreadyDeactivated(RegistryError):
    """Operation requires an active asset."""
    code = ErrorCode.ALREADY_DEACTIVATED

    def __init__(self, asset_id: int):
        super().__init__(f"asset {asset_id} is deactivated", asset_id=asset_id)


class ValueExists(RegistryError):
    """Reserved."""
    code = ErrorCode.VALUE_EXISTS


ERRORS_BY_CODE: Dict[ErrorCode, type] = {
    ErrorCode.UNAUTHORIZED_ADMIN: UnauthorizedAdmin,
    ErrorCode.UNAUTHORIZED_ASSET: UnauthorizedAsset,
    ErrorCode.INVALID_VALUE: InvalidValue,
    ErrorCode.INSUFFICIENT_VALUE: InsufficientValue,
    ErrorCode.ALREADY_DEACTIVATED: AlreadyDeactivated,
    ErrorCode.VALUE_EXISTS: ValueExists,
}


class InvariantViolation(Exception):
    """Ledger invariant violated."""
    pass


# =============================================================================
# VALIDATION RESULT
# =============================================================================

class ValidationError(Exception):
    """A single field validation failure."""

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    sanitized_value: Any = None

    def raise_if_invalid(self) -> None:
        """Raise InvalidValue carrying every field message."""
        if not self.is_valid:
            messages = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
            raise InvalidValue(messages)

    @classmethod
    def success(cls, sanitized_value: Any = None) -> "ValidationResult":
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def failure(cls, errors: List[ValidationError]) -> "ValidationResult":
        return cls(is_valid=False, errors=errors)


# =============================================================================
# INPUT VALIDATORS
# =============================================================================

class Validators:
    """Collection of input validators."""

    # Limits
    MAX_NOTE_LENGTH = 256
    MAX_BATCH_SIZE = 100
    MAX_RANGE_COUNT = 100

    @classmethod
    def validate_integer(
        cls,
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> ValidationResult:
        """Validate a plain integer; bools are rejected."""
        if isinstance(value, bool) or not isinstance(value, int):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected integer, got {type(value).__name__}", value)
            ])

        errors = []
        if min_value is not None and value < min_value:
            errors.append(ValidationError(field_name, f"Below minimum ({min_value})", value))
        if max_value is not None and value > max_value:
            errors.append(ValidationError(field_name, f"Exceeds maximum ({max_value})", value))

        if errors:
            return ValidationResult.failure(errors)
        return ValidationResult.success(value)

    @classmethod
    def validate_amount(cls, value: Any, field_name: str = "amount") -> ValidationResult:
        """Validate a mint or overwrite amount (at least 1)."""
        return cls.validate_integer(value, field_name, min_value=1)

    @classmethod
    def validate_reduction(cls, value: Any, field_name: str = "amount") -> ValidationResult:
        """Validate a value reduction (non-negative)."""
        return cls.validate_integer(value, field_name, min_value=0)

    @classmethod
    def validate_asset_id(cls, value: Any, field_name: str = "asset_id") -> ValidationResult:
        return cls.validate_integer(value, field_name, min_value=1)

    @classmethod
    def validate_note(
        cls,
        value: Any,
        field_name: str = "notes",
        max_length: Optional[int] = None,
    ) -> ValidationResult:
        """Validate note text against the length bound."""
        max_length = max_length if max_length is not None else cls.MAX_NOTE_LENGTH

        if not isinstance(value, str):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected string, got {type(value).__name__}", value)
            ])

        # Strip null bytes only; notes are stored verbatim otherwise
        sanitized = value.replace("\x00", "")
        if len(sanitized) > max_length:
            return ValidationResult.failure([
                ValidationError(field_name, f"Too long (max {max_length} chars)", value)
            ])
        return ValidationResult.success(sanitized)

    @classmethod
    def validate_batch(
        cls,
        value: Any,
        field_name: str = "amounts",
        max_size: Optional[int] = None,
    ) -> ValidationResult:
        """Validate the size of a bulk request; items are not inspected."""
        max_size = max_size if max_size is not None else cls.MAX_BATCH_SIZE

        if isinstance(value, (str, bytes)) or not hasattr(value, "__len__"):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected sequence, got {type(value).__name__}", value)
            ])

        size = len(value)
        if size < 1 or size > max_size:
            return ValidationResult.failure([
                ValidationError(field_name, f"Length {size} outside [1, {max_size}]", value)
            ])
        return ValidationResult.success(list(value))

    @classmethod
    def validate_range(
        cls,
        start: Any,
        count: Any,
        max_count: Optional[int] = None,
    ) -> ValidationResult:
        """Validate a range scan window."""
        max_count = max_count if max_count is not None else cls.MAX_RANGE_COUNT
        errors: List[ValidationError] = []

        start_result = cls.validate_integer(start, "start", min_value=1)
        errors.extend(start_result.errors)
        count_result = cls.validate_integer(count, "count", min_value=0, max_value=max_count)
        errors.extend(count_result.errors)

        if errors:
            return ValidationResult.failure(errors)
        return ValidationResult.success((start, count))


def require(result: ValidationResult) -> Any:
    """Raise on failure, otherwise return the sanitized value."""
    result.raise_if_invalid()
    return result.sanitized_value


# =============================================================================
# THREAD SAFETY
# =============================================================================

class AtomicCounter:
    """Thread-safe counter."""

    def __init__(self, initial: int = 0):
        self._value = initial
        self._lock = threading.Lock()

    def increment(self, delta: int = 1) -> int:
        """Atomically increment and return new value."""
        with self._lock:
            self._value += delta
            return self._value

    def get(self) -> int:
        with self._lock:
            return self._value

    def reset(self, value: int = 0) -> None:
        """Atomically reset the counter to the given value."""
        with self._lock:
            self._value = value


def atomic(func: Callable) -> Callable:
    """Decorator running a method under the instance's ``_lock``."""
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return func(self, *args, **kwargs)
    return wrapper


# =============================================================================
# STATE MACHINE INVARIANTS
# =============================================================================

class InvariantChecker:
    """Enforces ledger invariants."""

    @staticmethod
    def check_state_transition(
        current_state: Enum,
        target_state: Enum,
        valid_transitions: Dict[Enum, Set[Enum]],
    ) -> None:
        """Verify state transition is valid."""
        valid_targets = valid_transitions.get(current_state, set())
        if target_state not in valid_targets:
            raise InvariantViolation(
                f"Invalid state transition: {current_state.value} -> {target_state.value}. "
                f"Valid targets: {sorted(s.value for s in valid_targets)}"
            )

    @staticmethod
    def check_monotonic_increase(field_name: str, old_value: int, new_value: int) -> None:
        """Ensure value only increases."""
        if new_value < old_value:
            raise InvariantViolation(
                f"{field_name} must be monotonically increasing: "
                f"cannot go from {old_value} to {new_value}"
            )

    @staticmethod
    def check_non_negative(field_name: str, value: int) -> None:
        if value < 0:
            raise InvariantViolation(f"{field_name} cannot be negative: {value}")

    @staticmethod
    def check_value_sufficient(asset_id: int, available: int, required: int) -> None:
        """Ensure the asset holds enough value for a reduction."""
        if available < required:
            raise InsufficientValue(
                f"asset {asset_id} holds {available}, cannot reduce by {required}",
                asset_id=asset_id,
            )
