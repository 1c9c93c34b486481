# Standard Library
from dataclasses import dataclass
from dataclasses import field
from datetime import date

# local repo modules
from heatlib.errors import MalformedTimestamp
from heatlib.records import DEFAULT_DATE_FORMAT
from heatlib.records import Record
from heatlib.records import record_timestamp


#============================================
@dataclass(frozen=True, order=True)
class DayCount:
	"""
	One calendar day paired with its record count.
	"""
	day: date
	count: int


#============================================
@dataclass
class AggregationResult:
	day_counts: list[DayCount] = field(default_factory=list)
	malformed_count: int = 0


#============================================
def matches_author(record: Record, author_field: str, author: str) -> bool:
	"""
	Compare one record's author field with a login, ignoring case.
	"""
	value = record.get(author_field)
	if not isinstance(value, str):
		return False
	return value.casefold() == author.casefold()


#============================================
def filter_by_author(records, author_field: str, author: str) -> list[Record]:
	"""
	Keep records whose author field matches one identity.
	"""
	return [record for record in records if matches_author(record, author_field, author)]


#============================================
def aggregate(
	records,
	date_field: str,
	author: str | None = None,
	author_field: str = "author.login",
	date_format: str = DEFAULT_DATE_FORMAT,
	log_fn=None,
) -> AggregationResult:
	"""
	Count records per calendar day of their timestamp field.

	The author filter is applied to the raw records before grouping.
	"""
	if author:
		records = filter_by_author(records, author_field, author)
	counts: dict[date, int] = {}
	malformed_count = 0
	for record in records:
		try:
			stamp = record_timestamp(record, date_field, date_format)
		except MalformedTimestamp as error:
			malformed_count += 1
			if log_fn is not None:
				log_fn(f"Dropped record from {record.source or 'unknown source'}: {error}")
			continue
		day_key = stamp.date()
		if day_key not in counts:
			counts[day_key] = 0
		counts[day_key] += 1
	day_counts = [DayCount(day_key, counts[day_key]) for day_key in sorted(counts)]
	return AggregationResult(day_counts=day_counts, malformed_count=malformed_count)


#============================================
def count_by_source(records) -> dict[str, int]:
	"""
	Count records per provenance label.
	"""
	counts: dict[str, int] = {}
	for record in records:
		label = record.source or "unknown"
		if label not in counts:
			counts[label] = 0
		counts[label] += 1
	return counts
