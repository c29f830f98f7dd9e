from __future__ import annotations

from typing import Protocol, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from cmcount.models import SiteOption, utc_now

Default = TypeVar("Default")


class OptionStore(Protocol):
	def get(self, name: str, default: Default = None) -> str | Default: ...

	def add(self, name: str, value: object) -> bool: ...

	def set(self, name: str, value: object) -> None: ...


class SQLOptionStore:
	"""Site-wide options backed by the ``siteoption`` table.

	Values are written as text and every write commits straight away, so two
	requests racing on the same option simply leave the last write behind.
	"""

	def __init__(self, session: Session) -> None:
		self.session = session

	def get(self, name: str, default: Default = None) -> str | Default:
		option = self.session.get(SiteOption, name)
		if option is None:
			return default
		return option.value

	def add(self, name: str, value: object) -> bool:
		"""Create ``name`` only if it does not exist yet."""
		if self.session.get(SiteOption, name) is not None:
			return False

		self.session.add(SiteOption(name=name, value=str(value)))
		try:
			self.session.commit()
		except IntegrityError:
			# Another request created the row between the lookup and the insert.
			self.session.rollback()
			return False
		return True

	def set(self, name: str, value: object) -> None:
		option = self.session.get(SiteOption, name)
		if option is None:
			self.session.add(SiteOption(name=name, value=str(value)))
			try:
				self.session.commit()
				return
			except IntegrityError:
				self.session.rollback()
				option = self.session.get(SiteOption, name)

		option.value = str(value)
		option.updated_at = utc_now()
		self.session.add(option)
		self.session.commit()
