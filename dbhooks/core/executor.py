"""Hook executor.

Builds the ordered plan of behaviors for one operation on one model and runs it
as a sequential pipeline. Behaviors run one at a time in plan order; each may
mutate the model in place and may suspend. The first failure stops the pipeline
and is re-raised unchanged.
"""

import inspect
import logging
from typing import Any, Callable, List, NamedTuple, Optional, Tuple

from dbhooks.exceptions import InternalError
from dbhooks.logging.custom_levels import TRACE

from .annotations import declared_properties, merged_declarations
from .constants import Operation, Phase, operation_key
from .context import Context
from .registry import BehaviorDescriptor, OperationRegistry, OrderingHints, get_operations_registry

logger = logging.getLogger(__name__)


class PlanStep(NamedTuple):
    """One behavior invocation within a plan."""

    prop: str
    descriptor: BehaviorDescriptor
    args: Tuple[Any, ...]
    hints: Optional[OrderingHints]

    @property
    def handler(self) -> Callable[..., Any]:
        return self.descriptor.handler


def _sort_key(step: PlanStep) -> Tuple[int, Tuple[float, float]]:
    if step.hints is None:
        return (1, (0, 0))
    return (0, step.hints.sort_key())


def build_plan(
    model: Any,
    operation: Operation,
    phase: Phase,
    registry: Optional[OperationRegistry] = None,
) -> List[PlanStep]:
    """Resolve and order every behavior of ``model`` for one operation.

    Steps carrying ordering hints come first, sorted by
    ``(priority, group_priority)``; the others follow in resolution order.

    Raises:
        InternalError: If declared behaviors and registered handlers disagree
    """
    registry = registry or get_operations_registry()
    key = operation_key(phase, operation)
    cls = type(model)
    steps: List[PlanStep] = []

    for prop in declared_properties(cls, key):
        declared = merged_declarations(cls, prop, key)
        handlers = registry.resolve(model, prop, key)
        if not handlers:
            raise InternalError(
                f"Could not find registered handler for the operation {key}",
                details={"model": cls.__name__, "prop": prop, "key": key},
            )
        if [h.handler_id for h in handlers] != list(declared):
            raise InternalError(
                "Handlers and argument definitions do not match",
                details={
                    "model": cls.__name__,
                    "prop": prop,
                    "key": key,
                    "handlers": [h.handler_id for h in handlers],
                    "declared": list(declared),
                },
            )
        for descriptor in handlers:
            args, hints = registry.resolve_args(prop, descriptor.handler_id, model, key)
            steps.append(PlanStep(prop, descriptor, args, hints))

    return sorted(steps, key=_sort_key)


async def enforce(
    repository: Any,
    context: Context,
    model: Any,
    operation: Operation,
    phase: Phase,
    previous: Any = None,
    registry: Optional[OperationRegistry] = None,
) -> Any:
    """Run every behavior of ``model`` for ``phase`` of ``operation``.

    Each handler is called as ``handler(repository, context, args, prop, model)``;
    before an update the previous version is passed as a sixth argument.

    Returns:
        The model, possibly mutated by the behaviors

    Raises:
        InternalError: If an update runs without its previous version
    """
    operation = Operation(operation)
    phase = Phase(phase)
    with_previous = operation is Operation.UPDATE and phase is Phase.ON
    if with_previous and previous is None:
        raise InternalError(
            "Update behaviors require the previous version of the model",
            details={"model": type(model).__name__},
        )

    plan = build_plan(model, operation, phase, registry)
    if not plan:
        return model

    logger.debug(
        f"Running {len(plan)} behaviors for {operation_key(phase, operation)} on {type(model).__name__}"
    )
    for step in plan:
        logger.log(TRACE, f"-> {step.descriptor.handler_id} on {step.prop}")
        call_args = [repository, context, step.args, step.prop, model]
        if with_previous:
            call_args.append(previous)
        result = step.handler(*call_args)
        if inspect.isawaitable(result):
            await result

    return model
