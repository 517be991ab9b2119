"""In-process periodic maintenance tasks."""

import asyncio
from typing import Awaitable, Callable, List

from ..utils.logger import get_logger

logger = get_logger(__name__)


async def run_periodically(
    name: str, interval: float, job: Callable[[], Awaitable[object]]
) -> None:
    """Run ``job`` every ``interval`` seconds until cancelled. Job errors are logged."""
    while True:
        try:
            await asyncio.sleep(interval)
            await job()
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Periodic task failed", task=name, exc_info=e)


def start_periodic_tasks(services) -> List[asyncio.Task]:
    """Schedule progress record and temp file cleanup."""
    settings = services.settings
    return [
        asyncio.create_task(
            run_periodically(
                "progress-cleanup",
                settings.progress_cleanup_interval_seconds,
                services.progress.cleanup,
            )
        ),
        asyncio.create_task(
            run_periodically(
                "temp-file-cleanup",
                settings.temp_cleanup_interval_seconds,
                services.temp_cleanup.cleanup,
            )
        ),
    ]


async def stop_periodic_tasks(tasks: List[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
