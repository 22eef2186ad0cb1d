"""Operation verbs, phases and operation keys."""

from enum import Enum
from typing import Tuple, Union


class Operation(str, Enum):
    """CRUD verbs."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Phase(str, Enum):
    """Execution phase relative to the storage call."""

    ON = "on."
    AFTER = "after."


def operation_key(phase: Union[Phase, str], operation: Union[Operation, str]) -> str:
    """Build the registry key for a phase and verb, e.g. ``"on.create"``."""
    return f"{Phase(phase).value}{Operation(operation).value}"


class DBOperations:
    """Operation groups usable wherever a list of verbs is expected."""

    CREATE: Tuple[Operation, ...] = (Operation.CREATE,)
    READ: Tuple[Operation, ...] = (Operation.READ,)
    UPDATE: Tuple[Operation, ...] = (Operation.UPDATE,)
    DELETE: Tuple[Operation, ...] = (Operation.DELETE,)
    CREATE_UPDATE: Tuple[Operation, ...] = (Operation.CREATE, Operation.UPDATE)
    ALL: Tuple[Operation, ...] = (
        Operation.CREATE,
        Operation.READ,
        Operation.UPDATE,
        Operation.DELETE,
    )
