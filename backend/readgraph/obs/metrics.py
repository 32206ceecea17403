"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"readgraph_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"readgraph_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

FOLLOW_OUTCOMES = Counter(
	"readgraph_follow_outcomes_total",
	"Follow attempts by outcome",
	["outcome"],
)

FOLLOW_REJECTS = Counter(
	"readgraph_follow_rejects_total",
	"Follow graph operations rejected by a guard",
	["reason"],
)

FOLLOW_REQUEST_DECISIONS = Counter(
	"readgraph_follow_request_decisions_total",
	"Follow request transitions out of pending",
	["decision"],
)

UNFOLLOWS = Counter(
	"readgraph_unfollows_total",
	"Follow edges removed",
)

FEED_RANK_CANDIDATES = Counter(
	"readgraph_feed_rank_candidates_total",
	"Candidates scored by the feed ranker",
	["kind", "tab"],
)

FEED_RANK_DURATION = Histogram(
	"readgraph_feed_rank_duration_ms",
	"Feed ranking duration in milliseconds",
	["kind", "tab"],
	buckets=(1, 2, 5, 10, 25, 50, 100, 250),
)

FEED_RANK_SCORE_AVG = Gauge(
	"readgraph_feed_rank_score_avg",
	"Average score of the top ranked candidates in the last request",
)

NOTIFICATIONS_CREATED = Counter(
	"readgraph_notifications_created_total",
	"Notifications persisted",
	["type"],
)

NOTIFICATIONS_DROPPED = Counter(
	"readgraph_notifications_dropped_total",
	"Notification side effects that failed and were discarded",
	["type"],
)

FANOUT_EVENTS = Counter(
	"readgraph_fanout_events_total",
	"Content-published events fanned out to followers",
	["mode"],
)

FANOUT_ROWS = Counter(
	"readgraph_fanout_rows_total",
	"Notification rows written by follower fan-out",
)

FANOUT_BATCH_DURATION = Histogram(
	"readgraph_fanout_batch_duration_seconds",
	"Time spent writing one fan-out batch",
	buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_follow_outcome(outcome: str) -> None:
	FOLLOW_OUTCOMES.labels(outcome=outcome).inc()


def inc_follow_reject(reason: str) -> None:
	FOLLOW_REJECTS.labels(reason=reason).inc()


def inc_follow_request_decision(decision: str) -> None:
	FOLLOW_REQUEST_DECISIONS.labels(decision=decision).inc()


def inc_unfollow() -> None:
	UNFOLLOWS.inc()


def observe_feed_rank(kind: str, tab: str, candidates: int, elapsed_ms: float, top_avg: float | None) -> None:
	FEED_RANK_CANDIDATES.labels(kind=kind, tab=tab).inc(candidates)
	FEED_RANK_DURATION.labels(kind=kind, tab=tab).observe(elapsed_ms)
	if top_avg is not None:
		FEED_RANK_SCORE_AVG.set(top_avg)


def inc_notification_created(type_: str, count: int = 1) -> None:
	NOTIFICATIONS_CREATED.labels(type=type_).inc(count)


def inc_notification_dropped(type_: str) -> None:
	NOTIFICATIONS_DROPPED.labels(type=type_).inc()


def inc_fanout_event(mode: str) -> None:
	FANOUT_EVENTS.labels(mode=mode).inc()


def observe_fanout_batch(rows: int, elapsed_seconds: float) -> None:
	FANOUT_ROWS.inc(rows)
	FANOUT_BATCH_DURATION.observe(elapsed_seconds)
