"""
Value transformations applied by the tabular adapter.

A DataTransformation names an optional special-handling tag and an optional
type-conversion tag. Blank values, and values that fail conversion, take the
transformation's default.
"""

import re
from collections.abc import Callable
from typing import Any

from logiload.core.errors import ConfigError
from logiload.core.models import DataTransformation
from logiload.core.validators import TypeValidator, is_blank


def _trim(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _uppercase(value: Any) -> Any:
    return value.upper() if isinstance(value, str) else value


def _lowercase(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


def _uppercase_code(value: Any) -> Any:
    if not isinstance(value, str):
        value = str(value)
    return re.sub(r"\s+", "", value).upper()


def _digits_only(value: Any) -> Any:
    return re.sub(r"\D", "", str(value))


def _star_prefix(value: Any) -> Any:
    text = str(value)
    return text if text.startswith("*") else f"*{text}"


SPECIAL_HANDLERS: dict[str, Callable[[Any], Any]] = {
    "trim": _trim,
    "uppercase": _uppercase,
    "lowercase": _lowercase,
    "uppercase-code": _uppercase_code,
    "digits-only": _digits_only,
    "star-prefix": _star_prefix,
}

CONVERSION_ALIASES = {
    "text": "text",
    "varchar": "text",
    "string": "text",
    "str": "text",
    "int": "integer",
    "integer": "integer",
    "decimal": "decimal",
    "float": "float",
    "double": "float",
    "date": "date",
    "datetime": "datetime",
    "bool": "boolean",
    "boolean": "boolean",
}


def _normalize_tag(tag: str) -> str:
    return tag.strip().lower().replace("_", "-")


class ValueTransformer:
    """Compiled form of one DataTransformation."""

    def __init__(self, field_name: str, transformation: DataTransformation):
        self.field_name = field_name
        self.default = transformation.default_value
        self.handler: Callable[[Any], Any] | None = None
        self.converter: TypeValidator | None = None
        self.to_text = False

        if transformation.special_handling:
            tag = _normalize_tag(transformation.special_handling)
            if tag == "star-processing":
                tag = "star-prefix"
            if tag not in SPECIAL_HANDLERS:
                raise ConfigError(
                    f"Unknown special_handling '{transformation.special_handling}' for field '{field_name}'"
                )
            self.handler = SPECIAL_HANDLERS[tag]

        if transformation.data_type_conversion:
            raw = transformation.data_type_conversion.strip().lower()
            target = CONVERSION_ALIASES.get(raw)
            if target is None:
                raise ConfigError(
                    f"Unknown data_type_conversion '{transformation.data_type_conversion}' "
                    f"for field '{field_name}'"
                )
            if target == "text":
                self.to_text = True
            else:
                self.converter = TypeValidator(field_name, {"expected_type": target})

    def apply(self, value: Any) -> Any:
        if is_blank(value):
            return self.default

        if self.handler is not None:
            value = self.handler(value)
            if is_blank(value):
                return self.default

        if self.to_text:
            return str(value)

        if self.converter is not None:
            try:
                return self.converter.convert(value)
            except (ValueError, TypeError, ArithmeticError):
                return self.default

        return value


def compile_transformations(transformations: dict[str, DataTransformation]) -> dict[str, ValueTransformer]:
    """
    Compile a table's data transformations.

    Raises:
        ConfigError: If a transformation names an unknown tag
    """
    return {
        field_name: ValueTransformer(field_name, transformation)
        for field_name, transformation in transformations.items()
    }
