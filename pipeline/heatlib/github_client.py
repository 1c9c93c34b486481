from datetime import datetime
from datetime import timezone

import requests

from heatlib import records
from heatlib.errors import FetchError
from heatlib.errors import RateLimitError


#============================================
def is_rate_limit_error(error: Exception) -> bool:
	"""
	Tell quota exhaustion apart from permission failures on 403/429.
	"""
	status = getattr(error, "status", None)
	if status == 429:
		return True
	if status != 403:
		return False
	headers = getattr(error, "headers", None) or {}
	for key, value in headers.items():
		if str(key).lower() == "x-ratelimit-remaining" and str(value).strip() == "0":
			return True
	data = getattr(error, "data", None)
	message = ""
	if isinstance(data, dict):
		message = str(data.get("message", ""))
	elif data is not None:
		message = str(data)
	return "rate limit" in message.lower()


#============================================
def user_repos_endpoint(user: str) -> str:
	"""
	Build the repository listing path for one user.
	"""
	return f"/users/{user}/repos"


#============================================
def repo_commits_endpoint(repo_full_name: str) -> str:
	"""
	Build the commit listing path for one owner/name repository.
	"""
	return f"/repos/{repo_full_name}/commits"


#============================================
class GitHubClient:
	"""
	Thin PyGithub wrapper that fetches one page of one endpoint at a time.
	"""

	def __init__(self, token: str, log_fn=None):
		self.log_fn = log_fn
		self._api_call_count = 0
		self._api_calls_by_context: dict[str, int] = {}
		try:
			from github import Auth
			from github import Github
			from github.GithubException import GithubException
		except ModuleNotFoundError as error:
			raise RuntimeError(
				"Missing dependency: PyGithub. Install it with pip install PyGithub."
			) from error
		self._github_exception_class = GithubException
		self.client = self._build_github_client(Github, Auth, token)

	#============================================
	def _build_github_client(self, github_class, auth_module, token: str):
		"""
		Create Github client with retry disabled when supported.
		"""
		if token:
			auth = auth_module.Token(token)
			try:
				return github_class(auth=auth, retry=None)
			except TypeError:
				return github_class(auth=auth)
		try:
			return github_class(retry=None)
		except TypeError:
			return github_class()

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def record_api_call(self, context: str) -> None:
		"""
		Track one outbound GitHub API call.
		"""
		self._api_call_count += 1
		if context not in self._api_calls_by_context:
			self._api_calls_by_context[context] = 0
		self._api_calls_by_context[context] += 1

	#============================================
	def api_usage_snapshot(self) -> dict:
		"""
		Return API call counters for reporting.
		"""
		return {
			"api_call_count": self._api_call_count,
			"api_calls_by_context": dict(self._api_calls_by_context),
		}

	#============================================
	def parse_rate_limit_reset(self, reset_value) -> datetime:
		"""
		Normalize PyGithub reset values to timezone-aware UTC datetime.
		"""
		if isinstance(reset_value, datetime):
			return records.normalize_datetime(reset_value)
		if isinstance(reset_value, (int, float)):
			return datetime.fromtimestamp(float(reset_value), tz=timezone.utc)
		if isinstance(reset_value, str):
			return datetime.fromisoformat(reset_value.replace("Z", "+00:00"))
		raise RuntimeError(f"Unsupported rate-limit reset value: {reset_value!r}")

	#============================================
	def get_core_rate_limit_snapshot(self) -> tuple[int, datetime]:
		"""
		Read core rate-limit remaining/reset across PyGithub versions.
		"""
		self.record_api_call("GET /rate_limit")
		overview = self.client.get_rate_limit()
		rate_limit = getattr(overview, "core", None)
		if rate_limit is None:
			resources = getattr(overview, "resources", None)
			if isinstance(resources, dict):
				rate_limit = resources.get("core")
			elif resources is not None:
				rate_limit = getattr(resources, "core", None)
		if rate_limit is None:
			raise RuntimeError("Rate limit data does not expose core resource fields.")
		remaining = int(getattr(rate_limit, "remaining"))
		reset_time = self.parse_rate_limit_reset(getattr(rate_limit, "reset"))
		return remaining, reset_time

	#============================================
	def raise_from_github_error(self, error: Exception, context: str) -> None:
		"""
		Raise a human-readable FetchError, or RateLimitError when quota ran out.
		"""
		status = getattr(error, "status", None)
		if not is_rate_limit_error(error):
			raise FetchError(
				f"GitHub API error {status} while {context}: {error}"
			) from error
		reset_text = "unknown"
		remaining_text = "unknown"
		try:
			remaining, reset_time = self.get_core_rate_limit_snapshot()
			reset_text = reset_time.isoformat()
			remaining_text = str(remaining)
		except (RuntimeError, requests.exceptions.RequestException, self._github_exception_class) as snapshot_error:
			self.log(f"Rate limit snapshot unavailable: {snapshot_error}")
		raise RateLimitError(
			"GitHub API rate limit exceeded while "
			+ f"{context}; remaining={remaining_text}; reset_at={reset_text}. "
			+ "Provide settings.yaml github.token for higher limits."
		) from error

	#============================================
	def fetch_page(self, endpoint: str, page_number: int, page_size: int) -> list[records.Record]:
		"""
		Fetch one page of a list endpoint as flattened records.
		"""
		context = f"GET {endpoint}"
		self.record_api_call(context)
		parameters = {"page": page_number, "per_page": page_size}
		try:
			_, data = self.client.requester.requestJsonAndCheck(
				"GET",
				endpoint,
				parameters=parameters,
			)
		except self._github_exception_class as error:
			self.raise_from_github_error(error, f"fetching page {page_number} of {endpoint}")
		except requests.exceptions.RequestException as error:
			raise FetchError(
				f"Network error while fetching page {page_number} of {endpoint}: {error}"
			) from error
		if data is None:
			return []
		if not isinstance(data, list):
			raise FetchError(
				f"Expected a JSON list from {endpoint}, got {type(data).__name__}"
			)
		result = []
		for item in data:
			if not isinstance(item, dict):
				raise FetchError(f"Expected JSON objects from {endpoint}, got {item!r}")
			result.append(records.Record.from_payload(item, endpoint))
		return result
