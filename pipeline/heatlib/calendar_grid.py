"""Week-aligned calendar grid for per-day counts.

Sparse day counts are made dense over a requested range, padded at both
ends to whole weeks starting on a chosen week day, and reshaped into a
7-row matrix with one column per week.
"""

# Standard Library
from dataclasses import dataclass
from datetime import date
from datetime import datetime
from datetime import timedelta

# PIP3 modules
import numpy

# local repo modules
from heatlib.daily_aggregator import DayCount
from heatlib.errors import InvalidArgument
from heatlib.errors import InvalidRange


WEEK_DAYS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
MONTH_LABELS = (
	"Jan", "Feb", "Mar", "Apr", "May", "Jun",
	"Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
DEFAULT_WINDOW_DAYS = 365


#============================================
def resolve_week_start(week_start_day: str) -> int:
	"""Return the WEEK_DAYS index for a week-start label.

	Args:
		week_start_day: Three-letter day abbreviation, any case.

	Returns:
		Index into WEEK_DAYS.
	"""
	if isinstance(week_start_day, str):
		text = week_start_day.strip().capitalize()
		if text in WEEK_DAYS:
			return WEEK_DAYS.index(text)
	raise InvalidArgument(
		f"week_start_day must be one of {', '.join(WEEK_DAYS)}; got {week_start_day!r}"
	)


#============================================
def week_day_labels(week_start_day: str = "Sun") -> list[str]:
	"""
	Return the seven day labels in row order starting at week_start_day.
	"""
	start = resolve_week_start(week_start_day)
	return [WEEK_DAYS[(start + offset) % 7] for offset in range(7)]


#============================================
def weekday_index(day: date) -> int:
	"""
	Return the WEEK_DAYS index of one date (Sunday is 0).
	"""
	return (day.weekday() + 1) % 7


#============================================
def month_label(day: date) -> str:
	return MONTH_LABELS[day.month - 1]


#============================================
def _as_date(value, name: str) -> date:
	if isinstance(value, datetime):
		return value.date()
	if isinstance(value, date):
		return value
	raise InvalidArgument(f"{name} must be a date, got {value!r}")


#============================================
def normalize_day_counts(day_counts) -> dict[date, int]:
	"""Turn DayCount entries or a date->count mapping into one dict.

	Args:
		day_counts: Sequence of DayCount, or mapping of date to count.

	Returns:
		Mapping of date to non-negative count.
	"""
	if isinstance(day_counts, dict):
		pairs = list(day_counts.items())
	else:
		pairs = [(entry.day, entry.count) for entry in day_counts]
	counts: dict[date, int] = {}
	for raw_day, count in pairs:
		day_key = _as_date(raw_day, "day")
		if day_key in counts:
			raise InvalidArgument(f"Duplicate day count for {day_key.isoformat()}")
		if int(count) < 0:
			raise InvalidArgument(f"Negative count {count} for {day_key.isoformat()}")
		counts[day_key] = int(count)
	return counts


#============================================
def fill_missing_days(counts: dict[date, int], range_start: date, range_end: date) -> list[DayCount]:
	"""
	Build one DayCount per day of the inclusive range, 0 where absent.

	Days in counts outside the range are ignored.
	"""
	if range_end < range_start:
		raise InvalidRange(
			f"Range end {range_end.isoformat()} is before range start {range_start.isoformat()}"
		)
	span = (range_end - range_start).days + 1
	dense = []
	for offset in range(span):
		day_key = range_start + timedelta(days=offset)
		dense.append(DayCount(day_key, counts.get(day_key, 0)))
	return dense


#============================================
def pad_to_weeks(dense: list[DayCount], week_start_day: str = "Sun") -> tuple[list[DayCount], int, int]:
	"""Pad a dense day sequence so it starts and ends on whole weeks.

	Args:
		dense: Gap-free, date-sorted DayCount list.
		week_start_day: Label of the first day of each week.

	Returns:
		(padded days, head padding count, tail padding count).
	"""
	start = resolve_week_start(week_start_day)
	if not dense:
		return [], 0, 0
	first_day = dense[0].day
	last_day = dense[-1].day
	head_count = (weekday_index(first_day) - start) % 7
	tail_count = 6 - ((weekday_index(last_day) - start) % 7)
	head = [
		DayCount(first_day - timedelta(days=offset), 0)
		for offset in range(head_count, 0, -1)
	]
	tail = [
		DayCount(last_day + timedelta(days=offset), 0)
		for offset in range(1, tail_count + 1)
	]
	return head + list(dense) + tail, head_count, tail_count


#============================================
@dataclass
class CalendarGrid:
	"""
	7 x W count matrix with day-name rows and month-labelled week columns.
	"""
	matrix: numpy.ndarray
	row_labels: list[str]
	column_labels: list[str]
	days: list[date]
	range_start: date
	range_end: date
	head_padding: int = 0
	tail_padding: int = 0

	#============================================
	@property
	def week_count(self) -> int:
		return int(self.matrix.shape[1])

	#============================================
	@property
	def padded_start(self) -> date:
		return self.days[0]

	#============================================
	@property
	def padded_end(self) -> date:
		return self.days[-1]

	#============================================
	def cell_date(self, row: int, column: int) -> date:
		"""
		Return the date shown in one cell.
		"""
		return self.days[column * 7 + row]

	#============================================
	def in_range(self, row: int, column: int) -> bool:
		"""
		True when the cell is a requested day rather than week padding.
		"""
		return self.range_start <= self.cell_date(row, column) <= self.range_end

	#============================================
	def to_dict(self) -> dict:
		"""
		Return a JSON-ready mapping for a rendering collaborator.
		"""
		return {
			"range_start": self.range_start.isoformat(),
			"range_end": self.range_end.isoformat(),
			"padded_start": self.padded_start.isoformat(),
			"padded_end": self.padded_end.isoformat(),
			"row_labels": list(self.row_labels),
			"column_labels": list(self.column_labels),
			"matrix": self.matrix.tolist(),
			"total": int(self.matrix.sum()),
		}


#============================================
def build(day_counts, range_start, range_end, week_start_day: str = "Sun") -> CalendarGrid:
	"""Lay out per-day counts as a week-aligned 7-row matrix.

	Args:
		day_counts: Sequence of DayCount, or mapping of date to count.
		range_start: First requested day, inclusive.
		range_end: Last requested day, inclusive.
		week_start_day: Label of the day shown in row 0.

	Returns:
		CalendarGrid covering every requested day exactly once.
	"""
	row_labels = week_day_labels(week_start_day)
	range_start = _as_date(range_start, "range_start")
	range_end = _as_date(range_end, "range_end")
	counts = normalize_day_counts(day_counts)
	dense = fill_missing_days(counts, range_start, range_end)
	padded, head_count, tail_count = pad_to_weeks(dense, week_start_day)
	assert len(padded) % 7 == 0, f"padded span {len(padded)} is not whole weeks"
	week_count = len(padded) // 7
	values = numpy.array([entry.count for entry in padded], dtype=numpy.int64)
	# row r, column c holds entry c*7 + r
	matrix = values.reshape(week_count, 7).T.copy()
	column_labels = [month_label(padded[column * 7].day) for column in range(week_count)]
	return CalendarGrid(
		matrix=matrix,
		row_labels=row_labels,
		column_labels=column_labels,
		days=[entry.day for entry in padded],
		range_start=range_start,
		range_end=range_end,
		head_padding=head_count,
		tail_padding=tail_count,
	)


#============================================
def default_range(today: date | None = None, days: int = DEFAULT_WINDOW_DAYS) -> tuple[date, date]:
	"""
	Return the trailing window (today - days, today).
	"""
	if days < 0:
		raise InvalidArgument(f"days must be >= 0; got {days}")
	end = today or date.today()
	return end - timedelta(days=days), end
