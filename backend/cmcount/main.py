from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Annotated

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import Response
from sqlmodel import Session

from cmcount.database import engine, get_session, init_db
from cmcount.schemas import HealthRead, SubscriberCountRead
from cmcount.services.campaign_monitor import CampaignMonitorClient
from cmcount.services.options import SQLOptionStore
from cmcount.services.subscriber_count import SubscriberCountCache
from cmcount.settings import Settings, get_settings

SessionDependency = Annotated[Session, Depends(get_session)]
settings = get_settings()
logger = logging.getLogger(__name__)


def build_subscriber_count_cache(config_source: Settings) -> SubscriberCountCache:
	config = config_source.subscriber_count_config()
	return SubscriberCountCache(
		config,
		provider=CampaignMonitorClient(
			config.api_key,
			config.list_id,
			base_url=config_source.api_base_url,
			timeout=config_source.request_timeout_seconds,
			verify_tls=config_source.verify_tls,
		),
	)


subscriber_count_cache = build_subscriber_count_cache(settings)


@asynccontextmanager
async def lifespan(_: FastAPI):
	settings.validate_runtime()
	if not settings.verify_tls:
		logger.warning("TLS verification for Campaign Monitor requests is disabled.")
	init_db()
	yield


app = FastAPI(
	title="Campaign Monitor Subscriber Count",
	version="1.0.0",
	lifespan=lifespan,
)


@app.middleware("http")
async def refresh_subscriber_count(request: Request, call_next):
	"""Run the cache gate before every request, the way a CMS init hook would."""
	try:
		with Session(engine) as session:
			await subscriber_count_cache.maybe_refresh(SQLOptionStore(session))
	except Exception:
		logger.exception("Subscriber count refresh failed while handling %s.", request.url.path)

	return await call_next(request)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
	response: Response = await call_next(request)
	response.headers["Cache-Control"] = "no-store"
	response.headers["X-Content-Type-Options"] = "nosniff"
	return response


@app.get("/api/health", response_model=HealthRead)
def healthcheck() -> HealthRead:
	return HealthRead()


@app.get("/api/subscriber-count", response_model=SubscriberCountRead)
def read_subscriber_count(
	session: SessionDependency,
	default: Annotated[int | None, Query(ge=0)] = None,
) -> SubscriberCountRead:
	store = SQLOptionStore(session)
	fallback = settings.fallback_count if default is None else default
	return SubscriberCountRead.from_timestamp(
		count=subscriber_count_cache.get_count(store, fallback),
		last_polled_at=subscriber_count_cache.last_polled_at(store),
	)
