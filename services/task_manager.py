import asyncio
from typing import Dict
from core.logger import logger

class TaskManager:
    """Keeps references to fire-and-forget tasks until they finish."""

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def register_task(self, key: str, task: asyncio.Task):
        """Track a background task under key."""
        self._tasks[key] = task
        logger.debug("Registered background task", key=key)

        # Add callback to remove from dict when done
        task.add_done_callback(lambda t: self._cleanup_task(key, t))

    async def wait_all(self):
        """Wait for every tracked task. Failures are the task's own business."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    def _cleanup_task(self, key: str, task: asyncio.Task):
        """Remove task from dict if it's still the registered one."""
        if key in self._tasks and self._tasks[key] is task:
            del self._tasks[key]
