"""Orchestration across several update sources."""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from ..cancellation import CancellationToken, raise_if_cancelled
from ..exceptions import MirrorCancelledError
from ..models import UpdateRule
from .engine import build_update_task
from .items import UpdateItem, UpdateTask

if TYPE_CHECKING:
    from ..sources.base import UpdateSource

logger = logging.getLogger(__name__)


@dataclass
class SourceResult:
    """Outcome of querying one update source."""

    source: "UpdateSource"
    tasks: list[UpdateTask] = field(default_factory=list)
    error: Optional[BaseException] = None
    rule_errors: list[tuple[UpdateRule, Exception]] = field(default_factory=list)
    """Rules that could not be processed; the other rules still produced tasks"""

    @property
    def ok(self) -> bool:
        return self.error is None and not self.rule_errors


@dataclass
class RunStats:
    """Counts from executing update items."""

    completed: int = 0
    failed: int = 0
    bytes_total: int = 0
    errors: list[tuple[UpdateItem, Exception]] = field(default_factory=list)


async def collect_updates(
    sources: Sequence["UpdateSource"],
    cancel_token: Optional[CancellationToken] = None,
) -> list[SourceResult]:
    """Query several sources concurrently.

    A source that fails is reported in its SourceResult and logged; it does
    not prevent the other sources from being processed. Likewise a rule that
    fails (for example because its server path does not exist) is recorded
    in ``rule_errors`` while the remaining rules of the same source still
    produce tasks. Cancellation is not a failure and propagates.

    Args:
        sources: Sources to query
        cancel_token: Optional cancellation token shared by all sources

    Returns:
        One SourceResult per source, in input order
    """

    async def query(source: "UpdateSource") -> SourceResult:
        try:
            tree, rules = await source.fetch_rules(cancel_token)
        except MirrorCancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to get updates from {source.uri}: {e}")
            return SourceResult(source=source, error=e)

        result = SourceResult(source=source)
        for rule in rules:
            try:
                result.tasks.append(build_update_task(source, tree, rule, cancel_token))
            except MirrorCancelledError:
                raise
            except Exception as e:
                logger.error(f"Failed to process {rule.server_path} from {source.uri}: {e}")
                result.rule_errors.append((rule, e))
        return result

    return list(await asyncio.gather(*(query(source) for source in sources)))


def pick_tasks(results: Sequence[SourceResult]) -> list[UpdateTask]:
    """Merge tasks from several sources.

    When two sources declare a rule for the same client path, the task from
    the source with the higher manifest priority wins; otherwise the first
    one in source order is kept.
    """
    chosen: dict[str, UpdateTask] = {}
    order: list[str] = []
    for result in results:
        for task in result.tasks:
            key = str(task.rule.client_path).casefold()
            current = chosen.get(key)
            if current is None:
                chosen[key] = task
                order.append(key)
            elif task.rule.priority > current.rule.priority:
                logger.debug(
                    f"Using {task.rule.origin} over {current.rule.origin} for "
                    f"{task.rule.client_path}"
                )
                chosen[key] = task
    return [chosen[key] for key in order]


async def run_update_items(
    items: Sequence[UpdateItem],
    progress_callback: Optional[Callable[[UpdateItem, int, int], None]] = None,
    cancel_token: Optional[CancellationToken] = None,
    item_callback: Optional[Callable[[UpdateItem], None]] = None,
) -> RunStats:
    """Execute items one after another.

    A failing item is logged and counted; the remaining items still run.
    Cancellation stops the run and propagates.

    Args:
        items: Items to execute
        progress_callback: Optional callback(item, bytes_done, bytes_total)
        cancel_token: Optional cancellation token
        item_callback: Optional callback(item) invoked before each item starts

    Returns:
        RunStats with completed/failed counts
    """
    stats = RunStats()
    for item in items:
        raise_if_cancelled(cancel_token)
        if item_callback is not None:
            item_callback(item)

        item_progress = (
            functools.partial(progress_callback, item) if progress_callback is not None else None
        )
        try:
            await item.update(item_progress, cancel_token)
        except MirrorCancelledError:
            raise
        except Exception as e:
            logger.error(f"Update of {item.target_path} failed: {e}")
            stats.failed += 1
            stats.errors.append((item, e))
            continue

        stats.completed += 1
        stats.bytes_total += item.size
    return stats
