"""Partial-result parsing for streamed structured output.

While a completion streams in, the accumulated text is a truncated JSON
document. ``parse_partial`` recovers whatever values are already complete
(unterminated strings are dropped, open containers are closed), and
``partial_model`` derives a version of a schema in which every field is
optional so that the recovered object can be validated before the model
has finished writing it. Values that *are* present are validated exactly
as the strict schema would, so a bad enum tag fails immediately.
"""

from __future__ import annotations

import functools
import re
import typing
from typing import Annotated, Any, Optional

import pydantic_core
from pydantic import BaseModel, ValidationError, create_model

from hnsynth.errors import SchemaValidationFailure

# A number at the very end of the buffer may still be missing digits
_OPEN_NUMBER = re.compile(r"(?<=[:\[,])\s*-?(?:\d[\d.eE+-]*)?$")


@functools.cache
def partial_model(model: type[BaseModel]) -> type[BaseModel]:
    """Return a copy of ``model`` whose fields (recursively) default to None."""
    fields: dict[str, Any] = {}
    for name, info in model.model_fields.items():
        annotation = Optional[_partial_annotation(info.annotation)]
        if info.metadata:
            annotation = Annotated[(annotation, *info.metadata)]
        fields[name] = (annotation, None)

    return create_model(
        f"Partial{model.__name__}",
        __config__=model.model_config,
        __doc__=model.__doc__,
        **fields,
    )


def _partial_annotation(annotation: Any) -> Any:
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return partial_model(annotation)
    if typing.get_origin(annotation) is list:
        (item,) = typing.get_args(annotation)
        return list[_partial_annotation(item)]
    return annotation


def parse_partial(buffer: str) -> Any | None:
    """Parse a possibly-truncated JSON document.

    Returns None when nothing usable has arrived yet (empty buffer, or a
    prefix the parser cannot make sense of so far).

    A number still being written at the end of the buffer is left out
    until a following delimiter shows it is finished.
    """
    if not buffer.strip():
        return None
    match = _OPEN_NUMBER.search(buffer)
    if match and match.group().strip():
        buffer = buffer[: match.start()]
    try:
        return pydantic_core.from_json(buffer, allow_partial=True)
    except ValueError:
        return None


def validate_partial(data: Any, schema: type[BaseModel]) -> BaseModel:
    """Validate recovered data against the partial form of ``schema``.

    Raises:
        SchemaValidationFailure: If a value present in ``data`` is invalid.
    """
    try:
        return partial_model(schema).model_validate(data)
    except ValidationError as e:
        raise SchemaValidationFailure(
            f"Partial output does not match {schema.__name__}: {_first_error(e)}"
        ) from e


def validate_final(buffer: str, schema: type[BaseModel]) -> BaseModel:
    """Strictly validate the complete output of a finished stream.

    Raises:
        SchemaValidationFailure: If the text is not valid JSON or does not
            satisfy every required field of ``schema``.
    """
    try:
        return schema.model_validate_json(buffer)
    except ValidationError as e:
        raise SchemaValidationFailure(
            f"Final output does not match {schema.__name__}: {_first_error(e)}"
        ) from e


def is_complete(record: BaseModel, schema: type[BaseModel]) -> BaseModel | None:
    """Return ``record`` validated against the strict schema, or None."""
    try:
        return schema.model_validate(record.model_dump())
    except ValidationError:
        return None


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    first = details[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location or '<root>'}: {first.get('msg', '')}"
