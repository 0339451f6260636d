"""Domain models for the dome economy."""

from ._validation import (
    FieldSpec,
    MappingSpec,
    ModelValidationError,
    ModelValidator,
    SequenceSpec,
    validate_dataclass_payload,
)

__all__ = [
    "FieldSpec",
    "MappingSpec",
    "ModelValidationError",
    "ModelValidator",
    "SequenceSpec",
    "validate_dataclass_payload",
]
