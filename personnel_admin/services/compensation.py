"""
Compensation stack for multi-step operations without a shared transaction

Each forward step returns either ``Reversible`` (carrying the action that
undoes it) or ``Irreversible``. The caller pushes compensations as steps
succeed and, on failure, replays them newest-first. One failing compensation
never prevents the remaining ones from running.
"""
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Tuple, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompensationAction:
    """Inverse of one completed mutation"""
    name: str
    description: str
    undo: Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class Reversible:
    """Step outcome that can be undone"""
    compensation: CompensationAction
    affected: int = 0


@dataclass(frozen=True)
class Irreversible:
    """Step outcome with no inverse (e.g. a permanent delete)"""
    affected: int = 0
    reason: str = ""


StepOutcome = Union[Reversible, Irreversible]


@dataclass
class RollbackReport:
    attempted: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed


class CompensationStack:
    """LIFO list of compensations owned by a single operation"""

    def __init__(self) -> None:
        self._actions: List[CompensationAction] = []

    def __len__(self) -> int:
        return len(self._actions)

    def record(self, outcome: StepOutcome) -> None:
        """Push the compensation of a reversible outcome; irreversible ones push nothing"""
        if isinstance(outcome, Reversible):
            self._actions.append(outcome.compensation)
            logger.debug("Compensation pushed: %s", outcome.compensation.name)
        elif outcome.reason:
            logger.info("Irreversible step recorded: %s", outcome.reason)

    def names(self) -> List[str]:
        """Pending compensation names, newest first"""
        return [action.name for action in reversed(self._actions)]

    async def rollback(self) -> RollbackReport:
        """Pop and run every compensation, newest first"""
        report = RollbackReport()
        while self._actions:
            action = self._actions.pop()
            report.attempted.append(action.name)
            try:
                logger.info("Running compensation %s: %s", action.name, action.description)
                await action.undo()
            except Exception as exc:
                logger.error("Compensation %s failed: %s", action.name, exc, exc_info=True)
                report.failed.append((action.name, str(exc)))
        return report
