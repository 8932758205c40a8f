"""Bounded in-memory histories and TTL sweeps shared by the engines."""

from datetime import datetime, timedelta
from typing import Callable, Generic, Iterator, Optional, TypeVar

T = TypeVar("T")

DEFAULT_LIMIT = 1000
DEFAULT_TRIM_TO = 500


class BoundedHistory(Generic[T]):
	"""
	Append-only record list that keeps memory bounded.

	When the list grows past `limit` it is trimmed to the newest `trim_to`
	entries. Older entries also leave through `purge_older_than`.
	"""

	def __init__(
		self,
		limit: int = DEFAULT_LIMIT,
		trim_to: int = DEFAULT_TRIM_TO,
		timestamp: Optional[Callable[[T], datetime]] = None,
	):
		if trim_to > limit:
			raise ValueError("trim_to must not exceed limit")
		self.limit = limit
		self.trim_to = trim_to
		self._timestamp = timestamp or (lambda record: record.timestamp)
		self._records: list[T] = []

	def append(self, record: T) -> None:
		self._records.append(record)
		if len(self._records) > self.limit:
			self._records = self._records[-self.trim_to:]

	def purge_older_than(self, cutoff: datetime) -> int:
		"""Drop records stamped before `cutoff`. Returns the number removed."""
		before = len(self._records)
		self._records = [r for r in self._records if self._timestamp(r) >= cutoff]
		return before - len(self._records)

	def recent(self, count: int) -> list[T]:
		return self._records[-count:] if count > 0 else []

	def clear(self) -> None:
		self._records.clear()

	def __len__(self) -> int:
		return len(self._records)

	def __iter__(self) -> Iterator[T]:
		return iter(list(self._records))


def cutoff_for(max_age: float, now: Optional[datetime] = None) -> datetime:
	"""Timestamp before which entries are considered stale."""
	return (now or datetime.now()) - timedelta(seconds=max_age)
