"""
Error taxonomy for commit calendar collection and layout.
"""


#============================================
class FetchError(RuntimeError):
	"""
	Raised when one page request fails on transport or auth.
	"""


#============================================
class RateLimitError(FetchError):
	"""
	Raised when GitHub API rate limits block further requests.
	"""


#============================================
class InvalidArgument(ValueError):
	"""
	Raised for bad endpoint, page size, or week start values.
	"""


#============================================
class InvalidRange(ValueError):
	"""
	Raised when a date range ends before it starts.
	"""


#============================================
class MalformedTimestamp(ValueError):
	"""
	Raised when a record timestamp does not match the configured format.
	"""
