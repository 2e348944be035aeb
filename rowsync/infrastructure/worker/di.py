"""Dependency injection provider for the worker pool."""

import logging

from dishka import AsyncContainer, Provider, provide

from rowsync.config import Config
from rowsync.infrastructure.worker.worker import WorkerPool
from rowsync.util.di.scope import Scope

logger = logging.getLogger(__name__)


class WorkerProvider(Provider):
    @provide(scope=Scope.APP)
    def get_worker_pool(self, container: AsyncContainer, config: Config) -> WorkerPool:
        pool = WorkerPool(
            container=container,
            worker_config=config.worker,
            queue_config=config.queue,
        )
        logger.info(f"WorkerPool created with {len(pool.workers)} workers")
        return pool
