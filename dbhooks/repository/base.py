"""Repository base classes.

Every public operation builds (or accepts) a ``Context``, runs the model's
``ON`` behaviors, calls the storage primitive and then runs the ``AFTER``
behaviors. Subclasses implement the storage primitives only.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import TypeAdapter

from dbhooks.core.constants import Operation, Phase
from dbhooks.core.context import Context
from dbhooks.core.executor import enforce
from dbhooks.core.model import Model
from dbhooks.db.database import Database
from dbhooks.db.factory import get_database
from dbhooks.exceptions import ConflictError, InternalError, NotFoundError

M = TypeVar("M", bound=Model)

logger = logging.getLogger(__name__)


class Repository(ABC, Generic[M]):
    """CRUD boundary enforcing model behaviors around storage calls."""

    def __init__(self, model_class: Type[M]):
        self.model_class = model_class

    @property
    def pk(self) -> str:
        return self.model_class.pk()

    def _context(self, operation: Operation, context: Optional[Context]) -> Context:
        if context is not None:
            return context
        return Context.from_operation(operation, self.model_class)

    def _key_of(self, model: M) -> Any:
        key = getattr(model, self.pk, None)
        if key is None or key == "":
            raise InternalError(
                f"No value for the Id is defined under the property {self.pk}",
                details={"model": self.model_class.__name__, "pk": self.pk},
            )
        return key

    # Storage primitives

    @abstractmethod
    async def _create(self, model: M, context: Context) -> M:
        """Persist a new record."""

    @abstractmethod
    async def _read(self, key: Any, context: Context) -> M:
        """Load a record; raise NotFoundError if missing."""

    @abstractmethod
    async def _update(self, model: M, context: Context) -> M:
        """Persist changes to an existing record."""

    @abstractmethod
    async def _delete(self, key: Any, context: Context) -> M:
        """Remove a record and return it."""

    async def _create_all(self, models: Sequence[M], context: Context) -> List[M]:
        return [await self._create(model, context) for model in models]

    async def _read_all(self, keys: Sequence[Any], context: Context) -> List[M]:
        return [await self._read(key, context) for key in keys]

    async def _update_all(self, models: Sequence[M], context: Context) -> List[M]:
        return [await self._update(model, context) for model in models]

    async def _delete_all(self, keys: Sequence[Any], context: Context) -> List[M]:
        return [await self._delete(key, context) for key in keys]

    # Prefix / suffix

    async def _create_prefix(self, model: M, context: Context) -> M:
        model = model.model_copy(deep=True)
        await enforce(self, context, model, Operation.CREATE, Phase.ON)
        return model

    async def _read_prefix(self, key: Any, context: Context) -> None:
        stub = self.model_class.model_construct(**{self.pk: key})
        await enforce(self, context, stub, Operation.READ, Phase.ON)

    async def _update_prefix(self, model: M, context: Context) -> Tuple[M, M]:
        key = self._key_of(model)
        previous = await self.read(key, context=context.child(Operation.READ, self.model_class))
        model = model.model_copy(deep=True)
        await enforce(self, context, model, Operation.UPDATE, Phase.ON, previous=previous)
        return model, previous

    async def _delete_prefix(self, key: Any, context: Context) -> M:
        model = await self.read(key, context=context.child(Operation.READ, self.model_class))
        await enforce(self, context, model, Operation.DELETE, Phase.ON)
        return model

    async def _suffix(self, model: M, context: Context, operation: Operation) -> M:
        await enforce(self, context, model, operation, Phase.AFTER)
        return model

    # Public operations

    async def create(self, model: M, *, context: Optional[Context] = None) -> M:
        context = self._context(Operation.CREATE, context)
        model = await self._create_prefix(model, context)
        created = await self._create(model, context)
        return await self._suffix(created, context, Operation.CREATE)

    async def read(self, key: Any, *, context: Optional[Context] = None) -> M:
        context = self._context(Operation.READ, context)
        await self._read_prefix(key, context)
        model = await self._read(key, context)
        return await self._suffix(model, context, Operation.READ)

    async def update(self, model: M, *, context: Optional[Context] = None) -> M:
        context = self._context(Operation.UPDATE, context)
        model, _ = await self._update_prefix(model, context)
        updated = await self._update(model, context)
        return await self._suffix(updated, context, Operation.UPDATE)

    async def delete(self, key: Any, *, context: Optional[Context] = None) -> M:
        context = self._context(Operation.DELETE, context)
        await self._delete_prefix(key, context)
        deleted = await self._delete(key, context)
        return await self._suffix(deleted, context, Operation.DELETE)

    async def create_all(self, models: Sequence[M], *, context: Optional[Context] = None) -> List[M]:
        context = self._context(Operation.CREATE, context)
        prepared = [await self._create_prefix(model, context) for model in models]
        created = await self._create_all(prepared, context)
        return [await self._suffix(model, context, Operation.CREATE) for model in created]

    async def read_all(self, keys: Sequence[Any], *, context: Optional[Context] = None) -> List[M]:
        context = self._context(Operation.READ, context)
        for key in keys:
            await self._read_prefix(key, context)
        models = await self._read_all(keys, context)
        return [await self._suffix(model, context, Operation.READ) for model in models]

    async def update_all(self, models: Sequence[M], *, context: Optional[Context] = None) -> List[M]:
        context = self._context(Operation.UPDATE, context)
        prepared = [(await self._update_prefix(model, context))[0] for model in models]
        updated = await self._update_all(prepared, context)
        return [await self._suffix(model, context, Operation.UPDATE) for model in updated]

    async def delete_all(self, keys: Sequence[Any], *, context: Optional[Context] = None) -> List[M]:
        context = self._context(Operation.DELETE, context)
        for key in keys:
            await self._delete_prefix(key, context)
        deleted = await self._delete_all(keys, context)
        return [await self._suffix(model, context, Operation.DELETE) for model in deleted]


class DatabaseRepository(Repository[M]):
    """Repository storing models in a ``Database`` collection.

    Args:
        model_class: Model class handled by the repository
        database: Storage backend; defaults to ``get_database()``
        collection: Collection name; defaults to the lower-cased class name
    """

    def __init__(
        self,
        model_class: Type[M],
        database: Optional[Database] = None,
        collection: Optional[str] = None,
    ):
        super().__init__(model_class)
        self.database = database if database is not None else get_database()
        self.collection = collection or model_class.__name__.lower()

    def _to_record(self, model: M) -> dict:
        record = model.export(mode="json")
        record["id"] = str(self._key_of(model))
        return record

    def _to_model(self, record: dict) -> M:
        return self.model_class.model_validate(record)

    async def _create(self, model: M, context: Context) -> M:
        key = self._key_of(model)
        if await self.database.get(self.collection, str(key)) is not None:
            raise ConflictError(
                f"{self.model_class.__name__} {key} already exists",
                details={"collection": self.collection, "id": key},
            )
        record = await self.database.save(self.collection, self._to_record(model))
        logger.debug(f"Created {self.collection}/{key}")
        return self._to_model(record)

    async def _read(self, key: Any, context: Context) -> M:
        record = await self.database.get(self.collection, str(key))
        if record is None:
            raise NotFoundError(
                f"{self.model_class.__name__} {key} not found",
                details={"collection": self.collection, "id": key},
            )
        return self._to_model(record)

    async def _update(self, model: M, context: Context) -> M:
        key = self._key_of(model)
        if await self.database.get(self.collection, str(key)) is None:
            raise NotFoundError(
                f"{self.model_class.__name__} {key} not found",
                details={"collection": self.collection, "id": key},
            )
        record = await self.database.save(self.collection, self._to_record(model))
        logger.debug(f"Updated {self.collection}/{key}")
        return self._to_model(record)

    async def _delete(self, key: Any, context: Context) -> M:
        model = await self._read(key, context)
        await self.database.delete(self.collection, str(key))
        logger.debug(f"Deleted {self.collection}/{key}")
        return model

    async def find_by(self, field: str, value: Any) -> List[M]:
        """Return stored models whose ``field`` equals ``value`` (no behaviors run).

        ``value`` is compared in its stored JSON form, so UUIDs, datetimes and
        other non-string values match what ``_to_record`` wrote.
        """
        field_info = self.model_class.model_fields.get(field)
        if field == "id" or field == self.pk:
            value = str(value)
        elif field_info is not None:
            value = TypeAdapter(field_info.annotation).dump_python(value, mode="json")
        records = await self.database.find(self.collection, {field: value})
        return [self._to_model(record) for record in records]
