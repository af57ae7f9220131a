"""Validation models used by the schema validator and the settings service.

Validators never raise. They return a ValidationResult carrying errors
(which block writes), warnings (which never do) and free-form suggestions.
A valid result also carries the typed value that was parsed, so callers do
not have to re-interpret an untyped dict after checking ``is_valid``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..exceptions import SettingsEngineError, exception_for_kind
from ..types.enums import ErrorKind, WarningKind


@dataclass
class ValidationError:
    """A blocking problem found at a specific location of a document.

    Attributes:
        kind: ErrorKind taxonomy tag
        message: Human-readable error description
        location: Dotted path of the offending value, e.g.
            ``hooks.PreToolUse[0].hooks[1].timeout``
        suggested_fix: Optional suggestion for fixing the error
    """
    kind: ErrorKind
    message: str
    location: str = ""
    suggested_fix: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "kind": self.kind.value,
            "message": self.message,
            "location": self.location,
        }
        if self.suggested_fix is not None:
            result["suggested_fix"] = self.suggested_fix
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ValidationError:
        return cls(
            kind=ErrorKind(data["kind"]),
            message=data["message"],
            location=data.get("location", ""),
            suggested_fix=data.get("suggested_fix"),
        )

    def to_exception(self) -> SettingsEngineError:
        """Build the engine exception matching this error's kind."""
        exc_class = exception_for_kind(self.kind)
        kwargs: Dict[str, Any] = {"context": {"location": self.location}}
        if self.suggested_fix:
            kwargs["suggested_fix"] = self.suggested_fix
        return exc_class(self.message, **kwargs)


@dataclass
class ValidationWarning:
    """A non-blocking observation about a document.

    Attributes:
        kind: WarningKind category
        message: Human-readable warning description
        location: Dotted path of the value the warning is about
        suggestion: Optional improvement hint
    """
    kind: WarningKind
    message: str
    location: str = ""
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "kind": self.kind.value,
            "message": self.message,
            "location": self.location,
        }
        if self.suggestion is not None:
            result["suggestion"] = self.suggestion
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ValidationWarning:
        return cls(
            kind=WarningKind(data["kind"]),
            message=data["message"],
            location=data.get("location", ""),
            suggestion=data.get("suggestion"),
        )


@dataclass
class ValidationResult:
    """Outcome of validating a document or one of its parts.

    Attributes:
        is_valid: True if there are no errors
        errors: Blocking validation errors
        warnings: Non-blocking validation warnings
        suggestions: Improvement suggestions
        value: The parsed, typed value when the input is valid, else None
    """
    is_valid: bool = True
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    value: Any = None

    def add_error(
        self,
        kind: ErrorKind,
        message: str,
        location: str = "",
        suggested_fix: Optional[str] = None,
    ) -> None:
        """Add a validation error and mark the result as invalid."""
        self.errors.append(ValidationError(
            kind=kind,
            message=message,
            location=location,
            suggested_fix=suggested_fix,
        ))
        self.is_valid = False
        self.value = None

    def add_warning(
        self,
        kind: WarningKind,
        message: str,
        location: str = "",
        suggestion: Optional[str] = None,
    ) -> None:
        """Add a validation warning. Never affects validity."""
        self.warnings.append(ValidationWarning(
            kind=kind,
            message=message,
            location=location,
            suggestion=suggestion,
        ))

    def add_suggestion(self, suggestion: str) -> None:
        if suggestion not in self.suggestions:
            self.suggestions.append(suggestion)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def errors_of_kind(self, kind: ErrorKind) -> List[ValidationError]:
        return [error for error in self.errors if error.kind == kind]

    def warnings_of_kind(self, kind: WarningKind) -> List[ValidationWarning]:
        return [warning for warning in self.warnings if warning.kind == kind]

    def merge(self, other: ValidationResult) -> None:
        """Merge another validation result into this one.

        The parsed value of ``other`` is not carried over; the caller that
        owns the aggregate result decides what its value is.
        """
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        for suggestion in other.suggestions:
            self.add_suggestion(suggestion)

        if other.has_errors():
            self.is_valid = False
            self.value = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dictionary (the parsed value is omitted)."""
        return {
            "is_valid": self.is_valid,
            "errors": [error.to_dict() for error in self.errors],
            "warnings": [warning.to_dict() for warning in self.warnings],
            "suggestions": list(self.suggestions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ValidationResult:
        return cls(
            is_valid=data["is_valid"],
            errors=[ValidationError.from_dict(e) for e in data.get("errors", [])],
            warnings=[ValidationWarning.from_dict(w) for w in data.get("warnings", [])],
            suggestions=list(data.get("suggestions", [])),
        )

    @classmethod
    def success(cls, value: Any = None, suggestions: Optional[List[str]] = None) -> ValidationResult:
        return cls(is_valid=True, suggestions=suggestions or [], value=value)

    @classmethod
    def failure(
        cls,
        errors: Optional[List[ValidationError]] = None,
        warnings: Optional[List[ValidationWarning]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> ValidationResult:
        return cls(
            is_valid=False,
            errors=errors or [],
            warnings=warnings or [],
            suggestions=suggestions or [],
        )
