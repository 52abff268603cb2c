"""Coercion of caller-supplied finder arguments to column storage types.

Finder arguments arrive loosely typed (a UUID may be passed as its string form,
a boolean as "true"). Before any predicate is built, each argument is converted
to the strict Python type the storage backend expects for the column. Most types
are delegated to pydantic's lax-mode validation via cached TypeAdapters; text
types get their own rules since pydantic refuses to stringify numbers.
"""

import uuid
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import UUID1, TypeAdapter, ValidationError

from colfamily.errors import ArgumentTypeError
from colfamily.models.base import ensure_utc
from colfamily.models.column import ColumnDeclaration
from colfamily.models.enums import StorageType

_ADAPTERS: dict[StorageType, TypeAdapter[Any]] = {
    StorageType.UUID: TypeAdapter(UUID),
    StorageType.TIMEUUID: TypeAdapter(UUID1),
    StorageType.BOOLEAN: TypeAdapter(bool),
    StorageType.INT: TypeAdapter(int),
    StorageType.BIGINT: TypeAdapter(int),
    StorageType.VARINT: TypeAdapter(int),
    StorageType.FLOAT: TypeAdapter(float),
    StorageType.DOUBLE: TypeAdapter(float),
    StorageType.DECIMAL: TypeAdapter(Decimal),
    StorageType.TIMESTAMP: TypeAdapter(datetime),
    StorageType.BLOB: TypeAdapter(bytes),
}

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

# Node id for version-1 UUIDs. Passing it explicitly keeps uuid1() on the
# pure-Python path, which guarantees strictly increasing timestamps.
_NODE = uuid.getnode()


def coerce_value(storage_type: StorageType, value: Any) -> Any:
    """Convert a value to the Python type stored for ``storage_type``.

    Args:
        storage_type: Declared storage type of the target column.
        value: Caller-supplied value, possibly in textual form.

    Returns:
        The value converted to the column's strict type.

    Raises:
        ArgumentTypeError: If the value is None or cannot be converted.
    """
    if value is None:
        raise ArgumentTypeError(f"{storage_type} value cannot be None")

    if storage_type in (StorageType.TEXT, StorageType.VARCHAR, StorageType.ASCII):
        return _coerce_text(storage_type, value)

    try:
        coerced = _ADAPTERS[storage_type].validate_python(value)
    except ValidationError as e:
        raise ArgumentTypeError(f"cannot coerce {value!r} to {storage_type}") from e

    post_process = _POST_PROCESSORS.get(storage_type)
    if post_process is not None:
        coerced = post_process(coerced)
    return coerced


def coerce_argument(column: ColumnDeclaration, value: Any) -> Any:
    """Coerce a finder argument for ``column``, naming the column on failure."""
    try:
        return coerce_value(column.storage_type, value)
    except ArgumentTypeError as e:
        raise ArgumentTypeError(f"invalid argument for column '{column.name}': {e}") from (e.__cause__ or e)


def generate_value(storage_type: StorageType) -> UUID:
    """Generate a value for an auto-generated key column.

    timeuuid columns get a version-1 UUID whose timestamp is strictly greater
    than any previously generated one, so clustering order follows creation
    order. uuid columns get a random version-4 UUID.
    """
    if storage_type is StorageType.TIMEUUID:
        return uuid.uuid1(node=_NODE)
    if storage_type is StorageType.UUID:
        return uuid.uuid4()
    raise ValueError(f"cannot auto-generate values for {storage_type} columns")


def _coerce_text(storage_type: StorageType, value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal, UUID)):
        raise ArgumentTypeError(f"cannot coerce {type(value).__name__} to {storage_type}")
    text = value if isinstance(value, str) else str(value)
    if storage_type is StorageType.ASCII and not text.isascii():
        raise ArgumentTypeError(f"ascii value contains non-ASCII characters: {text!r}")
    return text


def _check_range(minimum: int, maximum: int) -> Callable[[int], int]:
    def check(value: int) -> int:
        if not minimum <= value <= maximum:
            raise ArgumentTypeError(f"integer {value} out of range [{minimum}, {maximum}]")
        return value

    return check


_POST_PROCESSORS: dict[StorageType, Callable[[Any], Any]] = {
    StorageType.INT: _check_range(_INT32_MIN, _INT32_MAX),
    StorageType.BIGINT: _check_range(_INT64_MIN, _INT64_MAX),
    # varint columns are stored as 64-bit integers
    StorageType.VARINT: _check_range(_INT64_MIN, _INT64_MAX),
    StorageType.TIMESTAMP: ensure_utc,
}
