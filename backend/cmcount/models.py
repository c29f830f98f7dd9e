from __future__ import annotations

from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
	"""Return the current UTC timestamp."""
	return datetime.now(timezone.utc)


class SiteOption(SQLModel, table=True):
	"""A site-wide name/value pair, shaped like a WordPress options row."""

	name: str = Field(primary_key=True, max_length=191)
	value: str = Field(default="")
	updated_at: datetime = Field(default_factory=utc_now, nullable=False)
