"""
Multi-store operations as ordered steps with compensating actions.

The relational store and the blob store share no transaction, so every
operation that touches both runs as a Saga. Required steps abort the saga
and trigger compensation of the steps already completed, newest first.
Optional steps log their failure and let the saga continue. Compensation
failures are logged with enough context for offline reconciliation and
never mask the original error.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from docshare.core.logging import get_logger

logger = get_logger(__name__)

Action = Callable[[], Awaitable[Any]]


@dataclass
class SagaStep:
    name: str
    action: Action
    compensate: Optional[Action] = None
    required: bool = True


@dataclass
class SagaResult:
    results: Dict[str, Any] = field(default_factory=dict)
    failed_steps: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.failed_steps


class Saga:
    def __init__(self, name: str, steps: List[SagaStep], context: Optional[Dict[str, Any]] = None):
        self.name = name
        self.steps = steps
        self.context = context or {}

    async def run(self) -> SagaResult:
        outcome = SagaResult()
        completed: List[SagaStep] = []

        for step in self.steps:
            try:
                outcome.results[step.name] = await step.action()
            except Exception as e:
                if not step.required:
                    outcome.failed_steps.append(step.name)
                    logger.warning(
                        f"Saga {self.name}: optional step '{step.name}' failed, continuing: {e} "
                        f"context={self.context}"
                    )
                    continue

                logger.error(f"Saga {self.name}: step '{step.name}' failed: {e} context={self.context}")
                await self._compensate(completed)
                raise

            completed.append(step)

        return outcome

    async def _compensate(self, completed: List[SagaStep]) -> None:
        for step in reversed(completed):
            if step.compensate is None:
                continue
            try:
                await step.compensate()
                logger.info(f"Saga {self.name}: compensated step '{step.name}'")
            except Exception as e:
                logger.error(
                    f"Saga {self.name}: compensation for '{step.name}' failed, "
                    f"needs reconciliation: {e} context={self.context}"
                )
