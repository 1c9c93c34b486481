from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone
from types import MappingProxyType

from heatlib.errors import MalformedTimestamp


DEFAULT_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


#============================================
def flatten_payload(payload: dict, prefix: str = "") -> dict:
	"""
	Flatten nested JSON objects into dotted field names.

	Lists are kept as tuples so the resulting record stays immutable.
	"""
	flat = {}
	for key, value in payload.items():
		name = f"{prefix}.{key}" if prefix else str(key)
		if isinstance(value, dict):
			nested = flatten_payload(value, name)
			if nested:
				flat.update(nested)
			else:
				flat[name] = None
			continue
		if isinstance(value, list):
			value = tuple(value)
		flat[name] = value
	return flat


#============================================
@dataclass(frozen=True)
class Record:
	"""
	One fetched row: a read-only mapping of named fields plus provenance.
	"""
	fields: MappingProxyType
	source: str = ""

	#============================================
	@classmethod
	def from_payload(cls, payload: dict, source: str = "") -> "Record":
		"""
		Build a record from one decoded JSON object.
		"""
		if not isinstance(payload, dict):
			raise TypeError(f"Record payload must be a mapping, got {type(payload).__name__}")
		return cls(MappingProxyType(flatten_payload(payload)), source)

	#============================================
	def get(self, name: str, default=None):
		return self.fields.get(name, default)

	#============================================
	def has_field(self, name: str) -> bool:
		return name in self.fields

	#============================================
	def with_source(self, source: str) -> "Record":
		"""
		Return the same fields stamped with a new provenance label.
		"""
		return Record(self.fields, source)


#============================================
@dataclass
class RecordSet:
	"""
	Ordered records gathered from one or more pages or endpoints.
	"""
	records: list[Record] = field(default_factory=list)

	def __len__(self) -> int:
		return len(self.records)

	def __iter__(self):
		return iter(self.records)

	def __getitem__(self, index):
		return self.records[index]

	#============================================
	def extend(self, records) -> None:
		self.records.extend(records)

	#============================================
	def sources(self) -> list[str]:
		"""
		Return distinct provenance labels in first-seen order.
		"""
		seen = []
		for record in self.records:
			if record.source not in seen:
				seen.append(record.source)
		return seen


#============================================
def normalize_datetime(value: datetime) -> datetime:
	"""
	Normalize datetime to timezone-aware UTC.
	"""
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc)


#============================================
def parse_timestamp(text, date_format: str = DEFAULT_DATE_FORMAT) -> datetime:
	"""
	Parse one timestamp string under an explicit format.

	Naive results are kept naive; callers decide how to compare them.
	"""
	if not isinstance(text, str) or not text.strip():
		raise MalformedTimestamp(f"Missing or non-text timestamp: {text!r}")
	try:
		return datetime.strptime(text.strip(), date_format)
	except ValueError as error:
		raise MalformedTimestamp(
			f"Timestamp {text!r} does not match format {date_format!r}"
		) from error


#============================================
def record_timestamp(record: Record, date_field: str, date_format: str = DEFAULT_DATE_FORMAT) -> datetime:
	"""
	Read and parse the timestamp field of one record.
	"""
	if not record.has_field(date_field):
		raise MalformedTimestamp(f"Record has no field {date_field!r}")
	return parse_timestamp(record.get(date_field), date_format)
