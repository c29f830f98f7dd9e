from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, computed_field


class SubscriberCountRead(BaseModel):
	count: int
	last_polled_at: Optional[datetime] = None

	@computed_field
	@property
	def formatted(self) -> str:
		return f"{self.count:,}"

	@classmethod
	def from_timestamp(cls, count: int, last_polled_at: int) -> SubscriberCountRead:
		return cls(
			count=count,
			last_polled_at=(
				datetime.fromtimestamp(last_polled_at, tz=timezone.utc) if last_polled_at > 0 else None
			),
		)


class HealthRead(BaseModel):
	status: str = "ok"
