"""
Error values and the discriminated Result returned by every core operation.

Core operations never raise for validation, authorization or ordering
problems. They return a Result whose `error` names what went wrong so the
caller can render a specific message.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class FieldError:
    """One offending field and a human-readable reason."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class ScreeningError:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


@dataclass(frozen=True)
class ValidationError(ScreeningError):
    """A payload failed its schema; `fields` lists every problem found."""

    fields: tuple[FieldError, ...] = ()

    @classmethod
    def of(cls, subject: str, fields: list[FieldError]) -> ValidationError:
        return cls(
            code="VALIDATION_ERROR",
            message=f"Invalid {subject} payload",
            details={"subject": subject, "fields": [f.to_dict() for f in fields]},
            fields=tuple(fields),
        )

    @property
    def field_names(self) -> list[str]:
        return [f.field for f in self.fields]


@dataclass(frozen=True)
class TransitionError(ScreeningError):
    """An operation was attempted out of order for the session's state."""

    @classmethod
    def of(cls, message: str, *, state: str, event: str) -> TransitionError:
        return cls(
            code="TRANSITION_ERROR",
            message=message,
            details={"state": state, "event": event},
        )


@dataclass(frozen=True)
class AuthorizationError(ScreeningError):
    """The acting role lacks the capability an operation requires."""

    @classmethod
    def of(cls, role: str | None, capability: str) -> AuthorizationError:
        return cls(
            code="AUTHORIZATION_ERROR",
            message=f"Role '{role}' lacks capability '{capability}'",
            details={"role": role, "capability": capability},
        )


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or an error, never both."""

    value: T | None = None
    error: ScreeningError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ScreeningError) -> Result[T]:
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, raising if this is an error result."""
        if self.error is not None:
            raise ValueError(f"{self.error.code}: {self.error.message}")
        return self.value  # type: ignore[return-value]
