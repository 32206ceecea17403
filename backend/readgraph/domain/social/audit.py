"""Audit helpers for follows and follow requests."""

from __future__ import annotations

import logging
from typing import Dict

from readgraph.infra.redis import redis_client
from readgraph.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

FOLLOW_EVENTS_STREAM = "x:follows.events"


async def log_follow_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **{key: str(value) for key, value in fields.items()}}
	try:
		await redis_client.xadd(FOLLOW_EVENTS_STREAM, payload, maxlen=10_000, approximate=True)
	except Exception:
		logger.exception("follow_audit.append_failed", extra={"event": event})


def inc_follow_outcome(outcome: str) -> None:
	obs_metrics.inc_follow_outcome(outcome)


def inc_follow_reject(reason: str) -> None:
	obs_metrics.inc_follow_reject(reason)


def inc_request_decision(decision: str) -> None:
	obs_metrics.inc_follow_request_decision(decision)


def inc_unfollow() -> None:
	obs_metrics.inc_unfollow()
