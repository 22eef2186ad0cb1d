"""Base model class for dbhooks entities."""

from typing import Any, Dict, Protocol, Tuple, runtime_checkable

from pydantic import BaseModel, ConfigDict

from dbhooks.exceptions import InternalError

from .annotations import get_primary_key, get_transient_attrs, register_model


@runtime_checkable
class Comparable(Protocol):
    """Capability required by behaviors that look at a previous version."""

    def compare(self, other: Any, *exclude: str) -> Dict[str, Tuple[Any, Any]]:
        ...


class Model(BaseModel):
    """Pydantic model whose field behaviors are registered on class creation.

    Example:
        class Account(Model):
            id: str = generated()
            email: str = hooked("", on_create_update(normalize_email))
            updated_at: Optional[datetime] = timestamp()
    """

    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        register_model(cls)

    @classmethod
    def pk(cls) -> str:
        """Name of the primary-key field (``primary_key`` flag, else ``id``).

        Raises:
            InternalError: If the model has no primary key
        """
        key = get_primary_key(cls)
        if key is None and "id" in cls.model_fields:
            key = "id"
        if key is None:
            raise InternalError(
                f"Model {cls.__name__} has no primary key",
                details={"model": cls.__name__},
            )
        return key

    def pk_value(self) -> Any:
        return getattr(self, self.pk(), None)

    def export(self, exclude_transient: bool = True, **kwargs: Any) -> Dict[str, Any]:
        """Export that automatically respects ``transient`` fields.

        Args:
            exclude_transient: Whether to exclude transient fields (default: True)
            **kwargs: Additional arguments passed to model_dump()
        """
        exclude_set = set(kwargs.get("exclude") or set())
        if exclude_transient:
            exclude_set.update(get_transient_attrs(type(self)))
        if exclude_set:
            kwargs["exclude"] = exclude_set
        result: Dict[str, Any] = self.model_dump(**kwargs)
        return result

    def compare(self, other: Any, *exclude: str) -> Dict[str, Tuple[Any, Any]]:
        """Return ``{field: (other_value, own_value)}`` for differing fields."""
        if not isinstance(other, BaseModel):
            raise TypeError(f"Cannot compare {type(self).__name__} with {type(other).__name__}")
        differences: Dict[str, Tuple[Any, Any]] = {}
        for name in type(self).model_fields:
            if name in exclude:
                continue
            old = getattr(other, name, None)
            new = getattr(self, name, None)
            if old != new:
                differences[name] = (old, new)
        return differences
