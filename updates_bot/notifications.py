"""
Notification sink contract.

The orchestrator hands every repository's ordered change-set to a
notifier before advancing the cursor. Delivery semantics belong to the
sink; a sink that cannot deliver raises ``NotificationError`` so the
cursor stays where it is and the change-set is offered again next run.
"""

from typing import Protocol, Sequence

from .domain.changes import ClassifiedChange
from .domain.entities import RepositoryTarget
from .utils.logger import get_logger


class ChangeNotifier(Protocol):
    """Outbound transport for rendered change summaries."""

    async def notify(
        self,
        target: RepositoryTarget,
        changes: Sequence[ClassifiedChange],
        summaries: Sequence[str],
    ) -> None:
        ...


class LoggingNotifier:
    """Writes every summary to the log; the default sink for CLI runs."""

    def __init__(self, logger_name: str = "updates_bot.notifications"):
        self.logger = get_logger(logger_name)

    async def notify(
        self,
        target: RepositoryTarget,
        changes: Sequence[ClassifiedChange],
        summaries: Sequence[str],
    ) -> None:
        for change, summary in zip(changes, summaries):
            self.logger.info(
                f"{change.change_type} change in {target.full_name}\n{summary}",
                extra={
                    "repository": target.key,
                    "change_type": change.change_type,
                    "entry_id": change.entry_id,
                }
            )
