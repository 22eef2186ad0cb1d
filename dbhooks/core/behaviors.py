"""Built-in field behaviors.

Each helper returns a pydantic field carrying the behavior and composes with
``hooked``, ``transient`` and the other helpers:

    class Document(Model):
        id: str = generated()
        owner: str = readonly("")
        secret: Optional[str] = hashed()
        payload: Any = serialized()
        slug: Optional[str] = composed(["owner", "id"], separator="-")
        created_on: Optional[datetime] = readonly(timestamp(operations=DBOperations.CREATE))
        updated_on: Optional[datetime] = timestamp()
"""

import hashlib
import inspect
import json
import logging
import uuid
from typing import Any, Callable, Sequence

from dbhooks.exceptions import ConflictError, InternalError, SerializationError, ValidationError

from .annotations import (
    Operations,
    after_all,
    behavior,
    hooked,
    on,
    on_create,
    on_create_update,
    on_update,
    primary_key,
)
from .constants import DBOperations
from .model import Comparable

logger = logging.getLogger(__name__)

READONLY_MESSAGE = "This cannot be updated"


@behavior("dbhooks.timestamp")
def stamp(repository, context, args, key, model, previous=None):
    """Set the field to the operation timestamp."""
    setattr(model, key, context.timestamp)


def timestamp(
    field_def: Any = None,
    operations: Operations = DBOperations.CREATE_UPDATE,
    **kwargs: Any,
) -> Any:
    """Stamp the field with the context timestamp on ``operations``."""
    return hooked(field_def, on(operations, stamp), **kwargs)


@behavior("dbhooks.readonly")
def check_readonly(repository, context, args, key, model, previous=None):
    """Reject an update that changes the field."""
    if previous is None:
        return
    if isinstance(model, Comparable):
        changed = key in model.compare(previous)
    else:
        changed = getattr(model, key, None) != getattr(previous, key, None)
    if changed:
        raise ValidationError(
            args[0] if args else READONLY_MESSAGE,
            details={"field": key, "model": type(model).__name__},
        )


def readonly(field_def: Any = None, message: str = READONLY_MESSAGE, **kwargs: Any) -> Any:
    """Block the field from changing on update."""
    return hooked(field_def, on_update(check_readonly, message), **kwargs)


@behavior("dbhooks.hashed")
def hash_value(repository, context, args, key, model, previous=None):
    """Replace the field value with its digest unless it is already stored."""
    value = getattr(model, key, None)
    if value is None:
        return
    if previous is not None and getattr(previous, key, None) == value:
        return
    algorithm = args[0] if args else "sha256"
    setattr(model, key, hashlib.new(algorithm, str(value).encode("utf-8")).hexdigest())


def hashed(field_def: Any = None, algorithm: str = "sha256", **kwargs: Any) -> Any:
    """Store the digest of the field instead of its value."""
    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    return hooked(field_def, on_create_update(hash_value, algorithm), **kwargs)


@behavior("dbhooks.serialize")
def serialize_value(repository, context, args, key, model, previous=None):
    value = getattr(model, key, None)
    try:
        setattr(model, key, json.dumps(value))
    except (TypeError, ValueError) as e:
        raise SerializationError(
            f"Failed to serialize {key}: {e}",
            details={"field": key, "model": type(model).__name__},
        ) from e


@behavior("dbhooks.deserialize")
def deserialize_value(repository, context, args, key, model, previous=None):
    value = getattr(model, key, None)
    if not isinstance(value, str):
        return
    try:
        setattr(model, key, json.loads(value))
    except ValueError as e:
        raise SerializationError(
            f"Failed to deserialize {key}: {e}",
            details={"field": key, "model": type(model).__name__},
        ) from e


def serialized(field_def: Any = None, **kwargs: Any) -> Any:
    """Store the field as a JSON string and expose it decoded."""
    return hooked(
        field_def,
        on_create_update(serialize_value),
        after_all(deserialize_value),
        **kwargs,
    )


@behavior("dbhooks.composed")
def compose_value(repository, context, args, key, model, previous=None):
    """Build the field from other fields of the model."""
    keys, separator, prefix, suffix, filter_empty, hash_result = args
    parts = []
    for source in keys:
        value = getattr(model, source, None)
        if value is None or value == "":
            if filter_empty:
                continue
            raise InternalError(
                f"Property {source} is required to compose {key}",
                details={"field": key, "source": source},
            )
        parts.append(str(value))

    if prefix:
        parts.insert(0, prefix)
    if suffix:
        parts.append(suffix)
    result = separator.join(parts)
    if hash_result:
        result = hashlib.sha256(result.encode("utf-8")).hexdigest()
    setattr(model, key, result)


def composed(
    keys: Sequence[str],
    separator: str = "_",
    prefix: str = "",
    suffix: str = "",
    filter_empty: bool = False,
    hash_result: bool = False,
    field_def: Any = None,
    **kwargs: Any,
) -> Any:
    """Compose the field from ``keys`` on create and update."""
    return hooked(
        field_def,
        on_create_update(
            compose_value,
            tuple(keys),
            separator,
            prefix,
            suffix,
            filter_empty,
            hash_result,
        ),
        **kwargs,
    )


@behavior("dbhooks.unique")
async def check_unique(repository, context, args, key, model, previous=None):
    """Reject a value already held by another record."""
    value = getattr(model, key, None)
    if value is None:
        return
    if previous is not None and getattr(previous, key, None) == value:
        return
    pk = type(model).pk()
    for existing in await repository.find_by(key, value):
        if getattr(existing, pk, None) != getattr(model, pk, None):
            raise ConflictError(
                f"{type(model).__name__} with {key}={value!r} already exists",
                details={"field": key, "value": value},
            )


def unique(field_def: Any = None, **kwargs: Any) -> Any:
    """Require the field value to be unique among stored records."""
    return hooked(field_def, on_create_update(check_unique), **kwargs)


def uuid_generator(repository: Any, model: Any) -> str:
    return str(uuid.uuid4())


@behavior("dbhooks.generated")
async def generate_value(repository, context, args, key, model, previous=None):
    """Fill an empty field from the generator."""
    if getattr(model, key, None) not in (None, ""):
        return
    generator = args[0]
    value = generator(repository, model)
    if inspect.isawaitable(value):
        value = await value
    setattr(model, key, value)
    logger.debug(f"Generated {key}={value!r} for {type(model).__name__}")


def generated(
    generator: Callable[[Any, Any], Any] = uuid_generator,
    field_def: Any = None,
    **kwargs: Any,
) -> Any:
    """Primary-key field filled on create when empty and readonly afterwards."""
    if field_def is None:
        field_def = ""
    return primary_key(
        readonly(hooked(field_def, on_create(generate_value, generator)), **kwargs)
    )


__all__ = [
    "READONLY_MESSAGE",
    "timestamp",
    "readonly",
    "hashed",
    "serialized",
    "composed",
    "unique",
    "generated",
    "uuid_generator",
]
