import math


class ProgressionError(Exception):
    """Base class for errors returned to callers of the progression core."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ValidationError(ProgressionError, ValueError):
    """Missing or out-of-range input."""

    kind = "validation"
    status_code = 400


class NotFoundError(ProgressionError, LookupError):
    """A rule, progression row or referenced record does not exist."""

    kind = "not_found"
    status_code = 404


class NoRuleFoundError(NotFoundError):
    kind = "no_rule_found"


class DuplicateError(ProgressionError):
    """A progression rule already exists for the exercise."""

    kind = "duplicate"
    status_code = 409


def require_id(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def require_number(value, field: str) -> float:
    """Return ``value`` as a float, rejecting missing, NaN and infinite input."""
    if value is None:
        raise ValidationError(f"{field} is required")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number")
    return number
