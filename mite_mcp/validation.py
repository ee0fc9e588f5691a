"""Coercion of loosely-typed tool arguments.

MCP clients frequently deliver numbers and booleans as strings (the same
way query-string parameters arrive). Every tool input model uses the
annotated types below instead of plain ``int``/``bool`` so that the
string forms are accepted in one place:

- numbers: native ``int``/``float`` pass through, numeric strings are parsed,
  ``""`` means absent (optional) or ``0`` (required)
- booleans: native ``bool`` passes through, ``"true"``/``"1"`` and
  ``"false"``/``"0"`` are parsed, ``""`` means absent (optional only)

Anything else raises ``ValueError`` naming the offending literal, which
pydantic reports as a field error.
"""

import math
import re
from typing import Annotated, Any, Optional, Union

from pydantic import BeforeValidator


Number = Union[int, float]

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

_TRUE_LITERALS = ("true", "1")
_FALSE_LITERALS = ("false", "0")


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    return type(value).__name__


def _parse_number(value: str) -> Number:
    text = value.strip()
    if text == "":
        return 0
    if not _NUMBER_RE.match(text):
        raise ValueError(f'Invalid number: "{value}"')
    if _INTEGER_RE.match(text):
        return int(text)
    number = float(text)
    if math.isinf(number):
        raise ValueError(f'Invalid number: "{value}"')
    if number.is_integer():
        return int(number)
    return number


def required_number(value: Any) -> Number:
    """Coerce a required numeric argument."""
    if isinstance(value, bool):
        raise ValueError(f"Expected number, received {_type_name(value)}")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            raise ValueError("Expected number, received nan")
        return value
    if isinstance(value, str):
        return _parse_number(value)
    raise ValueError(f"Expected number, received {_type_name(value)}")


def optional_number(value: Any) -> Optional[Number]:
    """Coerce an optional numeric argument; empty string and None mean absent."""
    if value is None or value == "":
        return None
    return required_number(value)


def required_boolean(value: Any) -> bool:
    """Coerce a required boolean argument."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value in _TRUE_LITERALS:
            return True
        if value in _FALSE_LITERALS:
            return False
        raise ValueError(f'Invalid boolean: "{value}"')
    raise ValueError(f"Expected boolean, received {_type_name(value)}")


def optional_boolean(value: Any) -> Optional[bool]:
    """Coerce an optional boolean argument; empty string and None mean absent."""
    if value is None or value == "":
        return None
    return required_boolean(value)


RequiredNumber = Annotated[Number, BeforeValidator(required_number)]
OptionalNumber = Annotated[Optional[Number], BeforeValidator(optional_number)]
RequiredBoolean = Annotated[bool, BeforeValidator(required_boolean)]
OptionalBoolean = Annotated[Optional[bool], BeforeValidator(optional_boolean)]
