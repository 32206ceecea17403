"""Redis stream consumer that fans content events out to followers."""

from __future__ import annotations

import asyncio
import logging
import os
import socket
from typing import Dict

from redis.exceptions import ResponseError

from readgraph.domain.notifications.dispatcher import NotificationDispatcher
from readgraph.domain.notifications.outbox import STREAM_FANOUT, FanoutEvent
from readgraph.infra.redis import redis_client
from readgraph.obs import metrics as obs_metrics
from readgraph.settings import settings

_LOG = logging.getLogger(__name__)


def _default_consumer_name() -> str:
	return f"{socket.gethostname()}-{os.getpid()}"


class FanoutWorker:
	"""Consumes `notif:fanout` events and writes one notification per follower.

	Reads through a consumer group so the stream position survives restarts and
	each event is delivered to a single worker across instances.
	"""

	def __init__(
		self,
		*,
		dispatcher: NotificationDispatcher | None = None,
		read_count: int | None = None,
		group: str | None = None,
		consumer: str | None = None,
		poll_interval: float | None = None,
		block_ms: int | None = 1000,
	) -> None:
		self.dispatcher = dispatcher or NotificationDispatcher(fanout_async=False)
		self.read_count = settings.fanout_read_count if read_count is None else read_count
		self.group = group or settings.fanout_consumer_group
		self.consumer = consumer or _default_consumer_name()
		self.poll_interval = settings.fanout_poll_interval_seconds if poll_interval is None else poll_interval
		self.block_ms = block_ms
		self._group_ready = False
		self._running = False

	async def run_forever(self) -> None:
		self._running = True
		while self._running:
			try:
				processed = await self.process_once()
			except Exception:
				_LOG.exception("fanout_worker.poll_failed")
				processed = 0
			if processed == 0:
				await asyncio.sleep(self.poll_interval)

	def stop(self) -> None:
		self._running = False

	async def _ensure_group(self) -> None:
		if self._group_ready:
			return
		try:
			await redis_client.xgroup_create(STREAM_FANOUT, self.group, id="0", mkstream=True)
		except ResponseError as exc:
			if "BUSYGROUP" not in str(exc):
				raise
		self._group_ready = True

	async def process_once(self) -> int:
		await self._ensure_group()
		streams: Dict[str, str] = {STREAM_FANOUT: ">"}
		messages = await redis_client.xreadgroup(
			self.group,
			self.consumer,
			streams=streams,
			count=self.read_count,
			block=self.block_ms,
		)
		if not messages:
			return 0
		processed = 0
		for _stream_name, entries in messages:
			for entry_id, payload in entries:
				# Acked up front: a crash mid fan-out drops the rest rather than resending.
				await redis_client.xack(STREAM_FANOUT, self.group, entry_id)
				await self._handle_event(dict(payload))
				processed += 1
		return processed

	async def _handle_event(self, payload: dict[str, str]) -> None:
		try:
			event = FanoutEvent.from_payload(payload)
		except (KeyError, ValueError):
			_LOG.warning("fanout_worker.invalid_payload", extra={"payload": payload})
			return
		if event is None:
			return
		try:
			rows = await self.dispatcher.fan_out_to_followers(event.actor_id, event.type, event.refs, event.message)
		except Exception:
			# Partial fan-out is accepted; earlier batches stay written.
			_LOG.exception("fanout_worker.fanout_failed", extra={"actor_id": str(event.actor_id)})
			obs_metrics.inc_notification_dropped(event.type.value)
			return
		obs_metrics.inc_fanout_event("processed")
		_LOG.info(
			"fanout_worker.event_processed",
			extra={"actor_id": str(event.actor_id), "type": event.type.value, "rows": rows},
		)


__all__ = ["FanoutWorker"]
