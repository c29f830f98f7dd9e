from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_DATABASE_URL = f"sqlite:///{DATA_DIR / 'cmcount.db'}"
DEFAULT_API_BASE_URL = "https://api.createsend.com"


@dataclass(frozen=True, slots=True)
class SubscriberCountConfig:
	"""Everything the cache gate and refresh fetcher need, fixed at construction."""

	api_key: str
	list_id: str
	ttl_seconds: int = 30
	count_option_name: str = "cmcount_total"
	lastpoll_option_name: str = "cmcount_lastpoll_timestamp"


class Settings(BaseSettings):
	"""Runtime configuration for the subscriber count service."""

	model_config = SettingsConfigDict(
		env_file=".env",
		env_prefix="CMCOUNT_",
		extra="ignore",
	)

	app_env: str = "development"
	api_key: SecretStr | None = None
	list_id: str | None = None
	cache_seconds: int = 30
	count_option_name: str = "cmcount_total"
	lastpoll_option_name: str = "cmcount_lastpoll_timestamp"
	api_base_url: str = DEFAULT_API_BASE_URL
	verify_tls: bool = True
	request_timeout_seconds: float = 10.0
	fallback_count: int = 0
	database_url: str = DEFAULT_DATABASE_URL

	@property
	def is_production(self) -> bool:
		return self.app_env.strip().lower() == "production"

	def api_key_value(self) -> str | None:
		if self.api_key is None:
			return None

		key = self.api_key.get_secret_value().strip()
		return key or None

	def list_id_value(self) -> str | None:
		if self.list_id is None:
			return None

		return self.list_id.strip() or None

	def subscriber_count_config(self) -> SubscriberCountConfig:
		return SubscriberCountConfig(
			api_key=self.api_key_value() or "",
			list_id=self.list_id_value() or "",
			ttl_seconds=self.cache_seconds,
			count_option_name=self.count_option_name,
			lastpoll_option_name=self.lastpoll_option_name,
		)

	def validate_runtime(self) -> None:
		if self.cache_seconds < 0:
			raise ValueError("CMCOUNT_CACHE_SECONDS must be zero or a positive number of seconds.")

		if self.is_production and not self.api_key_value():
			raise ValueError("Production mode requires CMCOUNT_API_KEY.")

		if self.is_production and not self.list_id_value():
			raise ValueError("Production mode requires CMCOUNT_LIST_ID.")


@lru_cache
def get_settings() -> Settings:
	return Settings()
