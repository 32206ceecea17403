"""FastAPI application entrypoint."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from readgraph import obs
from readgraph.api import feeds, follows, ops
from readgraph.api.errors import install_error_handlers
from readgraph.infra import postgres
from readgraph.settings import settings
from readgraph.workers.fanout_worker import FanoutWorker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	worker_tasks: list[asyncio.Task] = []
	worker_instances: list[FanoutWorker] = []
	if settings.workers_enabled:
		fanout_worker = FanoutWorker()
		worker_instances.append(fanout_worker)
		worker_tasks.append(asyncio.create_task(fanout_worker.run_forever(), name="notifications-fanout"))
		logger.info("workers.started", extra={"count": len(worker_tasks)})
	app.state.workers = worker_instances
	try:
		yield
	finally:
		for instance in worker_instances:
			instance.stop()
		for task in worker_tasks:
			task.cancel()
		if worker_tasks:
			await asyncio.gather(*worker_tasks, return_exceptions=True)
		await postgres.close_pool()


app = FastAPI(title="readgraph", lifespan=lifespan)
install_error_handlers(app)
obs.init(app)

app.include_router(follows.router)
app.include_router(feeds.router)
app.include_router(ops.router)
