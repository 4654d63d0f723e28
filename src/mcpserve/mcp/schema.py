"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Validator contract for tool arguments and JSON Schema derivation.

A tool validator is any object with a ``validate(value)`` method returning a
``ValidationResult`` (sync or async). Pydantic models, and any other type a
``pydantic.TypeAdapter`` accepts, are adapted automatically.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Protocol, Union, runtime_checkable

from pydantic import BaseModel, TypeAdapter, ValidationError

from mcpserve.errors import MCPSchemaError
from mcpserve.utils import maybe_await


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of a validation: either a parsed ``value`` or a list of ``issues``."""

    value: Any = None
    issues: list[dict[str, Any]] | None = None

    @property
    def ok(self) -> bool:
        return not self.issues


@runtime_checkable
class StandardSchema(Protocol):
    """Validator-agnostic contract used by tool definitions."""

    def validate(
        self, value: Any
    ) -> Union[ValidationResult, Awaitable[ValidationResult]]:
        ...


class PydanticSchema:
    """
    ``StandardSchema`` adapter over a pydantic model or type.

    Usage::

        class EchoArgs(BaseModel):
            input: str

        schema = PydanticSchema(EchoArgs)
        result = schema.validate({"input": "hi"})  # result.value is EchoArgs
    """

    def __init__(self, model: Any) -> None:
        self._model = model
        self._adapter: TypeAdapter[Any] = TypeAdapter(model)

    @property
    def model(self) -> Any:
        return self._model

    def validate(self, value: Any) -> ValidationResult:
        try:
            return ValidationResult(value=self._adapter.validate_python(value))
        except ValidationError as exc:
            return ValidationResult(issues=issues_from_validation_error(exc))

    def json_schema(self) -> dict[str, Any]:
        return self._adapter.json_schema()


def issues_from_validation_error(exc: ValidationError) -> list[dict[str, Any]]:
    """Convert pydantic errors into ``[{message, path}]`` issue records."""
    issues: list[dict[str, Any]] = []
    for row in exc.errors(include_url=False):
        issues.append(
            {
                "message": row.get("msg", "Invalid value"),
                "path": list(row.get("loc", ())),
            }
        )
    return issues


def as_standard_schema(schema: Any) -> StandardSchema | None:
    """
    Normalize a tool ``schema`` argument into a ``StandardSchema``.

    Pydantic model classes are checked first: they expose a deprecated
    ``validate`` classmethod that does not follow the contract.
    """
    if schema is None:
        return None
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return PydanticSchema(schema)
    if isinstance(schema, StandardSchema):
        return schema
    try:
        return PydanticSchema(schema)
    except Exception as exc:
        raise TypeError(
            f"Unsupported tool schema {schema!r}: expected a pydantic model/type "
            "or an object with a validate(value) method"
        ) from exc


def _coerce_result(raw: Any) -> ValidationResult:
    if isinstance(raw, ValidationResult):
        return raw
    if isinstance(raw, Mapping):
        issues = raw.get("issues")
        return ValidationResult(value=raw.get("value"), issues=list(issues) if issues else None)
    raise TypeError(f"validate() must return a ValidationResult, got {type(raw).__name__}")


async def run_validation(schema: StandardSchema, value: Any) -> ValidationResult:
    """Run a sync or async validator and normalize its result."""
    return _coerce_result(await maybe_await(schema.validate(value)))


async def to_json_schema(schema: StandardSchema) -> dict[str, Any]:
    """
    Derive a JSON Schema from a validator.

    Raises ``MCPSchemaError`` when the validator has no conversion or the
    conversion fails.
    """
    converter = getattr(schema, "json_schema", None)
    if not callable(converter):
        raise MCPSchemaError(f"{type(schema).__name__} does not expose json_schema()")
    try:
        out = await maybe_await(converter())
    except Exception as exc:
        raise MCPSchemaError(f"JSON Schema conversion failed: {exc}") from exc
    if not isinstance(out, dict):
        raise MCPSchemaError("json_schema() must return a dict")
    return out
