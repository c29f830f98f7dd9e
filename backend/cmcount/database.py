from collections.abc import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from cmcount.settings import DATA_DIR, get_settings


def build_engine(database_url: str) -> Engine:
	connect_args = {}
	if database_url.startswith("sqlite"):
		connect_args["check_same_thread"] = False
	return create_engine(database_url, connect_args=connect_args)


def _default_engine() -> Engine:
	database_url = get_settings().database_url
	if database_url.startswith(f"sqlite:///{DATA_DIR}"):
		DATA_DIR.mkdir(parents=True, exist_ok=True)
	return build_engine(database_url)


engine = _default_engine()


def init_db(target: Engine | None = None) -> None:
	"""Create the options table on startup."""
	SQLModel.metadata.create_all(target or engine)


def get_session() -> Generator[Session, None, None]:
	"""Yield a database session for request handlers."""
	with Session(engine) as session:
		yield session
