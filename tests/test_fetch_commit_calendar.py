import json
from datetime import date
from datetime import datetime
from datetime import timezone
from types import SimpleNamespace

import requests

import fetch_commit_calendar
from heatlib import calendar_grid
from heatlib import daily_aggregator
from heatlib import github_client
from heatlib import paginated_collector
from heatlib.records import Record
from heatlib.records import RecordSet


#============================================
def make_repo(full_name: str, fork: bool = False, size: int = 10) -> Record:
	return Record.from_payload({"full_name": full_name, "fork": fork, "size": size})


#============================================
def test_select_repositories_skips_forks_and_empty_repos() -> None:
	repos = [
		make_repo("alice/one"),
		make_repo("alice/forked", fork=True),
		make_repo("alice/empty", size=0),
		make_repo("alice/two"),
		Record.from_payload({"name": "no-full-name"}),
	]
	assert fetch_commit_calendar.select_repositories(repos, include_forks=False) == [
		"alice/one",
		"alice/two",
	]
	assert fetch_commit_calendar.select_repositories(repos, include_forks=True) == [
		"alice/one",
		"alice/forked",
		"alice/two",
	]
	assert fetch_commit_calendar.select_repositories(repos, True, max_repos=1) == ["alice/one"]


#============================================
def test_threshold_for_range_is_utc_midnight() -> None:
	threshold = fetch_commit_calendar.threshold_for_range(date(2023, 3, 2))
	assert threshold == datetime(2023, 3, 2, tzinfo=timezone.utc)


#============================================
def test_resolve_options_flags_override_settings() -> None:
	args = fetch_commit_calendar.parse_args([
		"--days", "30",
		"--week-start", "Mon",
		"--per-page", "500",
		"--no-include-forks",
		"--all-authors",
	])
	settings = {"calendar": {"days": 90, "week_start": "Wed", "per_page": 20}}
	options = fetch_commit_calendar.resolve_options(args, settings)
	assert options["days"] == 30
	assert options["week_start"] == "Mon"
	assert options["per_page"] == 500
	assert options["include_forks"] is False
	assert options["author_only"] is False


#============================================
def test_resolve_options_keeps_settings_without_flags() -> None:
	args = fetch_commit_calendar.parse_args([])
	settings = {"calendar": {"days": 90, "week_start": "Wed", "include_forks": False}}
	options = fetch_commit_calendar.resolve_options(args, settings)
	assert options["days"] == 90
	assert options["week_start"] == "Wed"
	assert options["include_forks"] is False
	assert options["author_only"] is True


#============================================
def test_build_output_payload_and_write_json(tmp_path) -> None:
	records = RecordSet([
		Record.from_payload({"commit": {"author": {"date": "2024-01-03T08:00:00Z"}}}, "alice/one"),
		Record.from_payload({"commit": {"author": {"date": "2024-01-03T09:00:00Z"}}}, "alice/two"),
	])
	commits = paginated_collector.CollectionResult(records=records, pages_fetched=2, malformed_count=1)
	aggregation = daily_aggregator.aggregate(records, "commit.author.date")
	grid = calendar_grid.build(aggregation.day_counts, date(2024, 1, 1), date(2024, 1, 7))
	payload = fetch_commit_calendar.build_output_payload("alice", "alice", grid, commits, aggregation)
	assert payload["commit_counts_by_repo"] == {"alice/one": 1, "alice/two": 1}
	assert payload["malformed_records"] == 1
	assert payload["calendar"]["total"] == 2

	output_path = fetch_commit_calendar.write_json(str(tmp_path / "nested" / "calendar.json"), payload)
	with open(output_path, "r", encoding="utf-8") as handle:
		loaded = json.load(handle)
	assert loaded["calendar"]["column_labels"] == ["Dec", "Jan"]
	assert loaded["pages_fetched"] == 2


#============================================
def test_main_rejects_bad_week_start_before_network(tmp_path, monkeypatch) -> None:
	"""
	Invalid options abort before the GitHub client is built.
	"""
	def fail_client(*args, **kwargs):
		raise AssertionError("client should not be created")

	monkeypatch.setattr(fetch_commit_calendar.github_client, "GitHubClient", fail_client)
	exit_code = fetch_commit_calendar.main([
		"--settings", str(tmp_path / "missing.yaml"),
		"--user", "alice",
		"--week-start", "Funday",
	])
	assert exit_code == 1


#============================================
def test_main_end_to_end_with_fake_client(tmp_path, monkeypatch) -> None:
	today = date.today()
	stamp = datetime.combine(today, datetime.min.time()).strftime("%Y-%m-%dT%H:%M:%SZ")

	class FakeClient:
		def __init__(self, token, log_fn=None):
			self.calls = []

		def fetch_page(self, endpoint, page_number, page_size):
			self.calls.append((endpoint, page_number, page_size))
			if page_number > 1:
				return []
			if endpoint == "/users/alice/repos":
				return [Record.from_payload({"full_name": "alice/one", "fork": False, "size": 3})]
			return [
				Record.from_payload({"author": {"login": "alice"}, "commit": {"author": {"date": stamp}}}),
				Record.from_payload({"author": {"login": "bob"}, "commit": {"author": {"date": stamp}}}),
			]

		def api_usage_snapshot(self):
			return {"api_call_count": len(self.calls)}

	monkeypatch.setattr(fetch_commit_calendar.github_client, "GitHubClient", FakeClient)
	output_path = tmp_path / "calendar.json"
	exit_code = fetch_commit_calendar.main([
		"--settings", str(tmp_path / "missing.yaml"),
		"--user", "alice",
		"--days", "10",
		"--output", str(output_path),
	])
	assert exit_code == 0
	with open(output_path, "r", encoding="utf-8") as handle:
		payload = json.load(handle)
	assert payload["calendar"]["total"] == 1
	assert payload["calendar"]["range_end"] == today.isoformat()
	assert payload["commit_counts_by_repo"] == {"alice/one": 2}
	assert len(payload["calendar"]["matrix"]) == 7


#============================================
def test_main_rejects_non_integer_days_setting(tmp_path, monkeypatch) -> None:
	"""
	A mapping where an integer belongs is reported as an invalid option.
	"""
	def fail_client(*args, **kwargs):
		raise AssertionError("client should not be created")

	settings_path = tmp_path / "settings.yaml"
	settings_path.write_text("calendar:\n  days: {a: 1}\n", encoding="utf-8")
	monkeypatch.setattr(fetch_commit_calendar.github_client, "GitHubClient", fail_client)
	exit_code = fetch_commit_calendar.main([
		"--settings", str(settings_path),
		"--user", "alice",
	])
	assert exit_code == 1


#============================================
def test_main_returns_error_on_network_failure(tmp_path, monkeypatch) -> None:
	"""
	A dropped connection ends the run without writing output.
	"""
	def raise_connection_error(verb, url, parameters=None):
		raise requests.exceptions.ConnectionError("connection reset")

	real_class = github_client.GitHubClient

	def build_client(token, log_fn=None):
		client = real_class.__new__(real_class)
		client.log_fn = log_fn
		client._api_call_count = 0
		client._api_calls_by_context = {}
		client._github_exception_class = LookupError
		client.client = SimpleNamespace(
			requester=SimpleNamespace(requestJsonAndCheck=raise_connection_error),
		)
		return client

	monkeypatch.setattr(fetch_commit_calendar.github_client, "GitHubClient", build_client)
	output_path = tmp_path / "calendar.json"
	exit_code = fetch_commit_calendar.main([
		"--settings", str(tmp_path / "missing.yaml"),
		"--user", "alice",
		"--repo", "alice/one",
		"--output", str(output_path),
	])
	assert exit_code == 1
	assert not output_path.exists()
