"""Result type shared by the output validators."""

from dataclasses import dataclass, field


@dataclass
class ValidationResult:
    """Errors are fatal, warnings are advisory."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def from_messages(cls, errors: list[str], warnings: list[str] | None = None) -> "ValidationResult":
        return cls(valid=not errors, errors=errors, warnings=warnings or [])

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}
