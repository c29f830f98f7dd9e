from __future__ import annotations

from typing import Any

import httpx

from cmcount.settings import DEFAULT_API_BASE_URL

# Campaign Monitor authenticates with the API key as the Basic auth username;
# the password is ignored but must be present.
API_KEY_PASSWORD = "x"


class ListStatsLookupError(RuntimeError):
	"""Raised when Campaign Monitor cannot return usable list statistics."""


class ListStatsTransportError(ListStatsLookupError):
	"""The HTTP exchange itself failed."""


class ListStatsPayloadError(ListStatsLookupError):
	"""The exchange completed but the body was not a JSON object."""


def build_list_stats_url(list_id: str, base_url: str = DEFAULT_API_BASE_URL) -> str:
	return f"{base_url.rstrip('/')}/api/v3.1/lists/{list_id}/stats.json"


class CampaignMonitorClient:
	def __init__(
		self,
		api_key: str,
		list_id: str,
		base_url: str = DEFAULT_API_BASE_URL,
		timeout: float = 10.0,
		verify_tls: bool = True,
		transport: httpx.AsyncBaseTransport | None = None,
	) -> None:
		self.api_key = api_key
		self.list_id = list_id
		self.base_url = base_url
		self.timeout = timeout
		self.verify_tls = verify_tls
		self.transport = transport

	@property
	def stats_url(self) -> str:
		return build_list_stats_url(self.list_id, self.base_url)

	async def fetch_list_stats(self) -> tuple[dict[str, Any], int]:
		"""Fetch the list's stats object along with the HTTP status it came back with.

		Error responses are not raised on: Campaign Monitor answers bad keys and
		unknown lists with a JSON error body, which callers tell apart from real
		stats by its shape.
		"""
		try:
			async with httpx.AsyncClient(
				timeout=self.timeout,
				verify=self.verify_tls,
				transport=self.transport,
			) as client:
				response = await client.get(
					self.stats_url,
					auth=httpx.BasicAuth(self.api_key, API_KEY_PASSWORD),
					headers={"Accept": "application/json"},
				)
		except httpx.HTTPError as exc:
			raise ListStatsTransportError(
				f"List stats request failed for {self.list_id}: {exc}",
			) from exc

		try:
			payload = response.json()
		except ValueError as exc:
			raise ListStatsPayloadError(
				f"List stats response for {self.list_id} is not valid JSON "
				f"(HTTP {response.status_code}).",
			) from exc

		if not isinstance(payload, dict):
			raise ListStatsPayloadError(
				f"List stats response for {self.list_id} is not a JSON object "
				f"(HTTP {response.status_code}).",
			)

		return payload, response.status_code
