"""Checks run on raw TOML tables before catalog and profile models are built."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Mapping, Sequence, Union

Check = Union[type, Callable[[Any], bool], "SequenceSpec", "MappingSpec"]


class ModelValidationError(ValueError):
    """Raised with every problem found in a table, not just the first."""

    def __init__(self, model: type[Any], errors: Sequence[str]) -> None:
        self.model = model
        self.errors = list(errors)
        message = ", ".join(self.errors) if self.errors else "invalid payload"
        super().__init__(f"{model.__name__} validation failed: {message}")


@dataclass(frozen=True)
class FieldSpec:
    expected: Check
    description: str
    required: bool = True


@dataclass(frozen=True)
class SequenceSpec:
    item: Check


@dataclass(frozen=True)
class MappingSpec:
    key: Check
    value: Check


def is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def is_identity(value: Any) -> bool:
    """Accept a 64-bit unsigned identity given as an int or a decimal string."""

    if isinstance(value, str) and value.isdigit():
        value = int(value)
    return is_non_negative_int(value) and value < 2**64


def _accepts(value: Any, expected: Check) -> bool:
    if isinstance(expected, SequenceSpec):
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
            return False
        return all(_accepts(item, expected.item) for item in value)
    if isinstance(expected, MappingSpec):
        return isinstance(value, Mapping) and all(
            _accepts(key, expected.key) and _accepts(item, expected.value)
            for key, item in value.items()
        )
    if isinstance(expected, type):
        # bool is an int subclass.
        if expected is int and isinstance(value, bool):
            return False
        return isinstance(value, expected)
    try:
        return bool(expected(value))
    except (TypeError, ValueError):
        return False


class ModelValidator:
    """Base class for validators attached to models as ``Model.validator``."""

    model: ClassVar[type[Any]]
    fields: ClassVar[Mapping[str, FieldSpec]]

    @classmethod
    def validate(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(data, Mapping):
            raise ModelValidationError(
                cls.model, ["Payload must be a mapping of field names to values"]
            )

        errors: list[str] = []
        for name, spec in cls.fields.items():
            if name not in data:
                if spec.required:
                    errors.append(f"Missing required field '{name}' ({spec.description})")
            elif not _accepts(data[name], spec.expected):
                errors.append(
                    f"Field '{name}' expected {spec.description}, "
                    f"received {type(data[name]).__name__}"
                )
        if errors:
            raise ModelValidationError(cls.model, errors)

        # Unknown keys are carried through so newer documents still load.
        return dict(data)


def validate_dataclass_payload(cls: type[Any], data: Mapping[str, Any]) -> dict[str, Any]:
    """Validate ``data`` with the validator registered on ``cls``, if any."""

    validator: type[ModelValidator] | None = getattr(cls, "validator", None)
    if validator is None:
        return dict(data)
    return validator.validate(data)
