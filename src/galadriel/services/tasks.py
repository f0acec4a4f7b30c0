from __future__ import annotations

import logging
import threading
from typing import Callable

__all__ = ["Task", "run_tasks"]

_log = logging.getLogger("galadriel.tasks")

# a task runs until the event it is handed is set, then returns
Task = Callable[[threading.Event], None]

_WATCH_INTERVAL = 0.1


def run_tasks(stop: threading.Event, *tasks: Task) -> None:
    """Run ``tasks`` in parallel threads under one cancellation scope.

    Every task receives the scope's event. Setting ``stop`` cancels the scope;
    so does the first task that raises. ``run_tasks`` returns once every
    thread has finished and re-raises the first error, if any.
    """

    if not tasks:
        return

    scope = threading.Event()
    errors: list[BaseException] = []
    lock = threading.Lock()
    finished = threading.Event()
    remaining = len(tasks)

    def _runner(task: Task) -> None:
        nonlocal remaining
        try:
            task(scope)
        except BaseException as exc:
            with lock:
                errors.append(exc)
            _log.error("task failed, cancelling siblings", extra={"task": _name(task), "error": str(exc)})
            scope.set()
        finally:
            with lock:
                remaining -= 1
                if not remaining:
                    finished.set()

    threads = [
        threading.Thread(target=_runner, args=(task,), name=f"galadriel-{_name(task)}", daemon=True) for task in tasks
    ]
    for thread in threads:
        thread.start()

    while not finished.wait(_WATCH_INTERVAL):
        if stop.is_set() and not scope.is_set():
            _log.debug("cancellation requested")
            scope.set()

    for thread in threads:
        thread.join()

    if errors:
        raise errors[0]


def _name(task: Task) -> str:
    target = getattr(task, "func", task)
    name = getattr(target, "__qualname__", None) or getattr(target, "__name__", None)
    return str(name or type(task).__name__)
