# carelink/background/tasks.py
from typing import Callable, Any

from fastapi import BackgroundTasks


def enqueue_task(
    background_tasks: BackgroundTasks,
    func: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> None:
    """
    Helper to add a background task in a consistent way.

    Usage in endpoints:
        from fastapi import BackgroundTasks
        from carelink.background.tasks import enqueue_task
        from carelink.core.events import event_bus

        @router.patch("/something")
        def handler(..., background_tasks: BackgroundTasks):
            enqueue_task(background_tasks, event_bus.publish, event)

    Tasks run after the response has been sent.
    """
    background_tasks.add_task(func, *args, **kwargs)
