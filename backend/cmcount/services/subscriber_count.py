from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import math
import re
from time import time
from typing import Any, Awaitable, Callable, Protocol

from cmcount.services.campaign_monitor import (
	CampaignMonitorClient,
	ListStatsPayloadError,
	ListStatsTransportError,
)
from cmcount.services.options import OptionStore
from cmcount.settings import SubscriberCountConfig

SUBSCRIBER_COUNT_FIELD = "TotalActiveSubscribers"

LEADING_NUMBER_PATTERN = re.compile(r"^[ \t\n\r\v\f]*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")
LEADING_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")

logger = logging.getLogger(__name__)


def coerce_count(value: Any) -> int:
	"""Best-effort integer coercion with PHP ``intval`` semantics.

	Numbers truncate toward zero, strings keep their leading numeric part and
	anything unparseable becomes 0. Negative or zero results are returned as is.
	"""
	if value is None:
		return 0
	if isinstance(value, bool):
		return int(value)
	if isinstance(value, int):
		return value
	if isinstance(value, float):
		return int(value) if math.isfinite(value) else 0
	if isinstance(value, str):
		match = LEADING_NUMBER_PATTERN.match(value)
		if match is None:
			return 0
		number = match.group(1)
		if LEADING_INTEGER_PATTERN.fullmatch(number):
			return int(number)
		return coerce_count(float(number))
	if isinstance(value, (list, tuple, dict)):
		return 1 if value else 0
	return 0


class RefreshStatus(str, Enum):
	SUCCESS = "success"
	TRANSPORT_FAILURE = "transport_failure"
	PAYLOAD_INVALID = "payload_invalid"


@dataclass(slots=True)
class RefreshResult:
	status: RefreshStatus
	polled_at: int
	count: int | None = None
	detail: str | None = None

	@property
	def succeeded(self) -> bool:
		return self.status is RefreshStatus.SUCCESS


class ListStatsProvider(Protocol):
	def fetch_list_stats(self) -> Awaitable[tuple[dict[str, Any], int]]: ...


class SubscriberCountCache:
	"""Keep a list's subscriber count in the options store, refreshed at most once per TTL.

	The cache gate runs on every request; when the last poll is older than the
	TTL it refreshes inline. A refresh always moves the last-poll timestamp to
	now, whatever the outcome, so a failing upstream is left alone for a full
	TTL window before the next attempt. The count itself only changes when the
	upstream answers with a stats object carrying ``TotalActiveSubscribers``.
	"""

	def __init__(
		self,
		config: SubscriberCountConfig,
		provider: ListStatsProvider | None = None,
		now: Callable[[], float] | None = None,
	) -> None:
		self.config = config
		self.provider = provider or CampaignMonitorClient(config.api_key, config.list_id)
		self._now = now or time

	def current_timestamp(self) -> int:
		return int(self._now())

	def last_polled_at(self, store: OptionStore) -> int:
		return coerce_count(store.get(self.config.lastpoll_option_name, 0))

	def get_count(self, store: OptionStore, default: int) -> int:
		"""Return the cached count, or ``default`` when nothing has been stored yet."""
		value = store.get(self.config.count_option_name)
		if value is None:
			return default
		return coerce_count(value)

	async def maybe_refresh(self, store: OptionStore) -> RefreshResult | None:
		"""Refresh when the TTL has lapsed; returns ``None`` when the cache is still fresh."""
		last_polled_at = self.last_polled_at(store)

		if last_polled_at == 0:
			now = self.current_timestamp()
			store.add(self.config.lastpoll_option_name, now)
			store.add(self.config.count_option_name, 0)
			logger.info("Initialized subscriber count options for list %s.", self.config.list_id)
			return await self.refresh(store)

		now = self.current_timestamp()
		elapsed = now - last_polled_at

		# A clock rolled backwards gives a negative elapsed, which just defers the refresh.
		if elapsed > self.config.ttl_seconds:
			logger.debug(
				"Subscriber count cache expired (last poll at %s | current time: %s | %s), polling.",
				last_polled_at,
				now,
				elapsed,
			)
			return await self.refresh(store)

		logger.debug("Subscriber count cache not expired, no new poll.")
		return None

	async def refresh(self, store: OptionStore) -> RefreshResult:
		"""Poll the upstream list stats and record the outcome. Never raises lookup failures."""
		result = await self._poll()

		if result.succeeded:
			store.set(self.config.count_option_name, result.count)
			logger.info(
				"Subscriber count for list %s refreshed: %s.",
				self.config.list_id,
				result.count,
			)
		else:
			logger.warning(
				"Subscriber count refresh for list %s skipped (%s): %s",
				self.config.list_id,
				result.status.value,
				result.detail,
			)

		store.set(self.config.lastpoll_option_name, result.polled_at)
		return result

	async def _poll(self) -> RefreshResult:
		try:
			payload, status_code = await self.provider.fetch_list_stats()
		except ListStatsTransportError as exc:
			return RefreshResult(
				status=RefreshStatus.TRANSPORT_FAILURE,
				polled_at=self.current_timestamp(),
				detail=str(exc),
			)
		except ListStatsPayloadError as exc:
			return RefreshResult(
				status=RefreshStatus.PAYLOAD_INVALID,
				polled_at=self.current_timestamp(),
				detail=str(exc),
			)

		if SUBSCRIBER_COUNT_FIELD not in payload:
			return RefreshResult(
				status=RefreshStatus.PAYLOAD_INVALID,
				polled_at=self.current_timestamp(),
				detail=f"{SUBSCRIBER_COUNT_FIELD} missing from response (HTTP {status_code}).",
			)

		return RefreshResult(
			status=RefreshStatus.SUCCESS,
			polled_at=self.current_timestamp(),
			count=coerce_count(payload[SUBSCRIBER_COUNT_FIELD]),
		)
