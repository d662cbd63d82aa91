"""Common Celery app for workers."""

import importlib
import pkgutil
from typing import List

from celery import Celery
from foodhub import settings

celery_app = Celery(
    "foodhub",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.timezone = "UTC"
celery_app.conf.task_default_queue = "celery"


def _import_all_task_modules() -> List[str]:
    """Import all modules under `foodhub.tasks.*` so Celery registers task decorators.

    This avoids manual imports in `foodhub/tasks/__init__.py` and automatically picks up
    new task modules when they are added.
    """
    imported: List[str] = []
    try:
        import foodhub.tasks as tasks_pkg
    except Exception as e:
        raise RuntimeError(
            "Celery startup failed: cannot import task package 'foodhub.tasks'"
        ) from e

    try:
        for module_info in pkgutil.walk_packages(
            tasks_pkg.__path__,
            prefix=f"{tasks_pkg.__name__}.",
        ):
            name = module_info.name
            importlib.import_module(name)
            imported.append(name)
    except Exception as e:
        raise RuntimeError(
            "Celery startup failed: error while importing task modules under 'foodhub.tasks.*'"
        ) from e
    return imported


# Auto-import tasks for worker processes.
_import_all_task_modules()
