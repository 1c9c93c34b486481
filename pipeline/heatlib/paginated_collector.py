"""Paginated, date-bounded collection of records from one API endpoint.

Pages are requested strictly in order. After each page is merged the
accumulated rows are checked against an optional date threshold; the first
page that reaches past the threshold ends the run, and only rows strictly
after the threshold are kept.
"""

# Standard Library
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime

# local repo modules
from heatlib.errors import InvalidArgument
from heatlib.errors import MalformedTimestamp
from heatlib.records import DEFAULT_DATE_FORMAT
from heatlib.records import Record
from heatlib.records import RecordSet
from heatlib.records import normalize_datetime
from heatlib.records import record_timestamp


MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 30


#============================================
@dataclass
class CollectionResult:
	"""
	Accumulated records plus counters describing how the run ended.
	"""
	records: RecordSet = field(default_factory=RecordSet)
	pages_fetched: int = 0
	malformed_count: int = 0
	threshold_reached: bool = False
	cancelled: bool = False


#============================================
def _log(log_fn, message: str) -> None:
	if log_fn is not None:
		log_fn(message)


#============================================
def validate_endpoint(endpoint) -> str:
	"""Raise InvalidArgument unless endpoint is a non-empty string.

	Args:
		endpoint: API path or URL to check.

	Returns:
		The endpoint with surrounding whitespace removed.
	"""
	if not isinstance(endpoint, str):
		raise InvalidArgument(f"Endpoint must be a string, got {type(endpoint).__name__}")
	text = endpoint.strip()
	if not text:
		raise InvalidArgument("Endpoint provided is empty")
	if any(char.isspace() for char in text):
		raise InvalidArgument(f"Endpoint contains whitespace: {endpoint!r}")
	return text


#============================================
def clamp_page_size(page_size, log_fn=None) -> int:
	"""Validate page size and cap it at MAX_PAGE_SIZE.

	Args:
		page_size: Requested rows per page.
		log_fn: Optional callable for one progress line.

	Returns:
		The page size actually sent to the fetcher.
	"""
	if isinstance(page_size, bool) or not isinstance(page_size, int):
		raise InvalidArgument(f"Page size must be an integer, got {page_size!r}")
	if page_size < 1:
		raise InvalidArgument(f"Page size must be positive, got {page_size}")
	if page_size > MAX_PAGE_SIZE:
		_log(
			log_fn,
			f"Page size {page_size} exceeds the maximum ({MAX_PAGE_SIZE}); "
			+ f"using {MAX_PAGE_SIZE}.",
		)
		return MAX_PAGE_SIZE
	return page_size


#============================================
def _as_records(rows, source: str) -> list[Record]:
	"""
	Coerce fetched rows into records stamped with one provenance label.
	"""
	records = []
	for row in rows or []:
		if isinstance(row, Record):
			records.append(row.with_source(source))
		else:
			records.append(Record.from_payload(row, source))
	return records


#============================================
def collect(
	fetcher,
	endpoint: str,
	page_size: int = DEFAULT_PAGE_SIZE,
	date_field: str | None = None,
	date_threshold: datetime | None = None,
	date_format: str = DEFAULT_DATE_FORMAT,
	source: str | None = None,
	log_fn=None,
	cancel_check=None,
) -> CollectionResult:
	"""Fetch pages of one endpoint until the last page or the date threshold.

	Args:
		fetcher: Object exposing fetch_page(endpoint, page_number, page_size).
		endpoint: API path or URL to page through.
		page_size: Rows per page; values above MAX_PAGE_SIZE are capped.
		date_field: Record field holding the timestamp used for early stop.
		date_threshold: Only rows strictly after this moment are kept once
			any row at or before it has been seen.
		date_format: strptime format for date_field values.
		source: Provenance label for fetched records; defaults to endpoint.
		log_fn: Optional callable receiving progress lines.
		cancel_check: Optional callable polled before each page request after
			the first; returning True stops collection with the rows merged
			so far. Page 1 is always fetched.

	Returns:
		CollectionResult with the accumulated records and run counters.
	"""
	endpoint = validate_endpoint(endpoint)
	per_page = clamp_page_size(page_size, log_fn)
	threshold = None
	if date_threshold is not None:
		if not isinstance(date_threshold, datetime):
			raise InvalidArgument(f"Date threshold must be a datetime, got {date_threshold!r}")
		threshold = normalize_datetime(date_threshold)
	use_threshold = bool(date_field) and (threshold is not None)
	label = source or endpoint

	result = CollectionResult()
	accumulated: list[Record] = []
	# parsed timestamps, parallel to accumulated once the date column appears
	stamps: list[datetime | None] = []
	column_present = False
	page_number = 1
	while True:
		if (page_number > 1) and (cancel_check is not None) and cancel_check():
			_log(log_fn, f"URL: {endpoint} cancelled before page {page_number}")
			result.cancelled = True
			break
		_log(log_fn, f"URL: {endpoint} querying page {page_number}")
		page = _as_records(fetcher.fetch_page(endpoint, page_number, per_page), label)
		result.pages_fetched += 1
		accumulated.extend(page)
		stamps.extend([None] * len(page))
		if page_number == 1 and not page:
			_log(log_fn, f"URL: {endpoint} returned no data")

		if use_threshold:
			if not column_present:
				column_present = any(record.has_field(date_field) for record in accumulated)
			if column_present:
				kept_records = []
				kept_stamps = []
				for record, stamp in zip(accumulated, stamps):
					if stamp is None:
						try:
							stamp = normalize_datetime(record_timestamp(record, date_field, date_format))
						except MalformedTimestamp as error:
							result.malformed_count += 1
							_log(log_fn, f"Dropped record from {label}: {error}")
							continue
					kept_records.append(record)
					kept_stamps.append(stamp)
				accumulated = kept_records
				stamps = kept_stamps
				if any(stamp < threshold for stamp in stamps):
					accumulated = [
						record for record, stamp in zip(accumulated, stamps)
						if stamp > threshold
					]
					result.threshold_reached = True
					_log(
						log_fn,
						f"URL: {endpoint} reached date threshold {threshold.isoformat()} "
						+ f"on page {page_number}",
					)
					break

		if len(page) < per_page:
			break
		page_number += 1

	result.records = RecordSet(accumulated)
	if result.malformed_count:
		_log(
			log_fn,
			f"URL: {endpoint} skipped {result.malformed_count} record(s) with malformed timestamps",
		)
	return result


#============================================
def collect_endpoints(fetcher, endpoints, **kwargs) -> CollectionResult:
	"""Collect several endpoints in order and merge their records.

	Args:
		fetcher: Object exposing fetch_page(endpoint, page_number, page_size).
		endpoints: Mapping of provenance label to endpoint, or a list of
			endpoints used as their own labels.
		**kwargs: Passed through to collect(); a source keyword is ignored
			because every endpoint is labelled from endpoints.

	Returns:
		One CollectionResult covering every endpoint.
	"""
	if isinstance(endpoints, dict):
		items = list(endpoints.items())
	else:
		items = [(endpoint, endpoint) for endpoint in endpoints]
	kwargs.pop("source", None)
	cancel_check = kwargs.get("cancel_check")
	merged = CollectionResult()
	for index, (label, endpoint) in enumerate(items):
		if (index > 0) and (cancel_check is not None) and cancel_check():
			_log(kwargs.get("log_fn"), f"URL: {endpoint} cancelled before first page")
			merged.cancelled = True
			break
		part = collect(fetcher, endpoint, source=label, **kwargs)
		merged.records.extend(part.records)
		merged.pages_fetched += part.pages_fetched
		merged.malformed_count += part.malformed_count
		merged.threshold_reached = merged.threshold_reached or part.threshold_reached
		if part.cancelled:
			merged.cancelled = True
			break
	return merged
