#!/usr/bin/env python3
import argparse
import json
import os
import sys
from datetime import date
from datetime import datetime
from datetime import time
from datetime import timezone

from heatlib import calendar_grid
from heatlib import daily_aggregator
from heatlib import github_client
from heatlib import paginated_collector
from heatlib import pipeline_settings
from heatlib.errors import FetchError
from heatlib.errors import InvalidArgument
from heatlib.errors import RateLimitError

try:
	import rich.console
except ModuleNotFoundError:
	rich = None


RICH_CONSOLE = rich.console.Console() if rich is not None else None
DEFAULT_OUTPUT = "out/commit_calendar.json"


#============================================
def log_step(message: str) -> None:
	"""
	Print one timestamped progress line.
	"""
	now_text = datetime.now().strftime("%H:%M:%S")
	line = f"[fetch_commit_calendar {now_text}] {message}"
	if RICH_CONSOLE is None:
		print(line, flush=True)
		return
	lower = message.lower()
	style = "cyan"
	if ("failed" in lower) or ("error" in lower):
		style = "bold red"
	elif ("rate limit" in lower) or ("skipp" in lower) or ("dropped" in lower) or ("exceeds" in lower):
		style = "yellow"
	elif ("wrote " in lower) or ("collected" in lower):
		style = "green"
	RICH_CONSOLE.print(line, style=style)


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Fetch a user's commit history and write a week-aligned contribution calendar."
	)
	parser.add_argument(
		"--user",
		default="",
		help="GitHub username to fetch (falls back to settings.yaml).",
	)
	parser.add_argument(
		"--settings",
		default="settings.yaml",
		help="YAML settings path for defaults.",
	)
	parser.add_argument(
		"--repo",
		action="append",
		default=[],
		help="owner/name repository to include; repeatable. Skips repository listing.",
	)
	parser.add_argument(
		"--days",
		type=int,
		default=None,
		help="Trailing day window ending today (default from settings, else 365).",
	)
	parser.add_argument(
		"--week-start",
		default="",
		help="First day of each calendar week: Sun, Mon, ... (default from settings, else Sun).",
	)
	parser.add_argument(
		"--per-page",
		type=int,
		default=None,
		help="Rows per API page; values above 100 are capped.",
	)
	parser.add_argument(
		"--author",
		default="",
		help="Only count commits by this login (defaults to --user).",
	)
	parser.add_argument(
		"--all-authors",
		action="store_true",
		help="Count commits by every author instead of filtering to one login.",
	)
	fork_group = parser.add_mutually_exclusive_group()
	fork_group.add_argument(
		"--include-forks",
		dest="include_forks",
		action="store_true",
		help="Include forked repos.",
	)
	fork_group.add_argument(
		"--no-include-forks",
		dest="include_forks",
		action="store_false",
		help="Exclude forked repos.",
	)
	parser.set_defaults(include_forks=None)
	parser.add_argument(
		"--max-repos",
		type=int,
		default=0,
		help="Optional cap for repos processed (0 means no cap).",
	)
	parser.add_argument(
		"--output",
		default=DEFAULT_OUTPUT,
		help="Path to JSON output file.",
	)
	args = parser.parse_args(argv)
	return args


#============================================
def resolve_options(args: argparse.Namespace, settings: dict) -> dict:
	"""
	Merge command-line flags over settings.yaml calendar values.
	"""
	options = pipeline_settings.get_calendar_settings(settings)
	if args.days is not None:
		options["days"] = args.days
	if args.week_start.strip():
		options["week_start"] = args.week_start.strip()
	if args.per_page is not None:
		options["per_page"] = args.per_page
	if args.include_forks is not None:
		options["include_forks"] = args.include_forks
	if args.all_authors:
		options["author_only"] = False
	return options


#============================================
def threshold_for_range(range_start: date) -> datetime:
	"""
	Return UTC midnight of the first calendar day as the fetch cutoff.
	"""
	return datetime.combine(range_start, time.min, tzinfo=timezone.utc)


#============================================
def select_repositories(repo_records, include_forks: bool, max_repos: int = 0) -> list[str]:
	"""
	Pick owner/name values from repository records.

	Empty repositories are skipped since their commit listing is an API error.
	"""
	selected = []
	for record in repo_records:
		full_name = record.get("full_name") or ""
		if not full_name:
			continue
		if record.get("fork") and not include_forks:
			log_step(f"Skipped fork: {full_name}")
			continue
		if record.get("size") == 0:
			log_step(f"Skipped empty repo: {full_name}")
			continue
		selected.append(full_name)
	if max_repos > 0:
		selected = selected[:max_repos]
	return selected


#============================================
def build_output_payload(
	user: str,
	author: str,
	grid: calendar_grid.CalendarGrid,
	commits: paginated_collector.CollectionResult,
	aggregation: daily_aggregator.AggregationResult,
) -> dict:
	"""
	Assemble the JSON document handed to a renderer.
	"""
	payload = {
		"user": user,
		"author_filter": author,
		"generated_at": datetime.now(timezone.utc).isoformat(),
		"calendar": grid.to_dict(),
		"commit_counts_by_repo": daily_aggregator.count_by_source(commits.records),
		"pages_fetched": commits.pages_fetched,
		"malformed_records": commits.malformed_count + aggregation.malformed_count,
		"cancelled": commits.cancelled,
	}
	return payload


#============================================
def write_json(path: str, payload: dict) -> str:
	output_path = os.path.abspath(path)
	output_dir = os.path.dirname(output_path)
	if output_dir:
		os.makedirs(output_dir, exist_ok=True)
	with open(output_path, "w", encoding="utf-8") as handle:
		json.dump(payload, handle, ensure_ascii=True, indent=2)
		handle.write("\n")
	return output_path


#============================================
def main(argv: list[str] | None = None) -> int:
	"""
	Run the fetch, aggregate, and layout steps and write JSON output.
	"""
	args = parse_args(argv)
	settings, settings_path = pipeline_settings.load_settings(args.settings)
	user = args.user.strip() or pipeline_settings.get_github_username(settings)
	log_step(f"Using settings file: {settings_path}")
	log_step(f"Using GitHub user: {user}")
	try:
		options = resolve_options(args, settings)
		row_labels = calendar_grid.week_day_labels(options["week_start"])
		per_page = paginated_collector.clamp_page_size(options["per_page"], log_step)
		range_start, range_end = calendar_grid.default_range(date.today(), options["days"])
	except (InvalidArgument, RuntimeError) as error:
		log_step(f"Invalid option: {error}")
		return 1
	author = ""
	if options["author_only"]:
		author = args.author.strip() or user
	log_step(
		f"Calendar range: {range_start.isoformat()} -> {range_end.isoformat()} "
		+ f"(rows {' '.join(row_labels)})"
	)

	token = pipeline_settings.get_github_token(settings)
	if token:
		log_step("Using authenticated GitHub API mode via settings.yaml github.token.")
	else:
		log_step("Using unauthenticated GitHub API mode (lower rate limit).")
	try:
		client = github_client.GitHubClient(token, log_fn=log_step)
	except RuntimeError as error:
		log_step(str(error))
		log_step("Aborting fetch run before network calls.")
		return 1

	try:
		if args.repo:
			repos = [name.strip() for name in args.repo if name.strip()]
		else:
			log_step("Fetching repository list.")
			listing = paginated_collector.collect(
				client,
				github_client.user_repos_endpoint(user),
				page_size=per_page,
				log_fn=log_step,
			)
			repos = select_repositories(listing.records, options["include_forks"], args.max_repos)
		log_step(f"Repository candidates: {len(repos)}.")
		endpoints = {name: github_client.repo_commits_endpoint(name) for name in repos}
		commits = paginated_collector.collect_endpoints(
			client,
			endpoints,
			page_size=per_page,
			date_field=options["date_field"],
			date_threshold=threshold_for_range(range_start),
			log_fn=log_step,
		)
	except RateLimitError as error:
		log_step(str(error))
		log_step("Run stopped by rate limit; no output written.")
		return 1
	except FetchError as error:
		log_step(f"Fetch failed: {error}")
		return 1
	log_step(f"Collected {len(commits.records)} commit record(s) over {commits.pages_fetched} page(s).")

	aggregation = daily_aggregator.aggregate(
		commits.records,
		options["date_field"],
		author=author or None,
		author_field=options["author_field"],
		log_fn=log_step,
	)
	grid = calendar_grid.build(
		aggregation.day_counts,
		range_start,
		range_end,
		week_start_day=options["week_start"],
	)
	payload = build_output_payload(user, author, grid, commits, aggregation)
	output_arg = pipeline_settings.resolve_user_scoped_out_path(args.output, DEFAULT_OUTPUT, user)
	output_path = write_json(output_arg, payload)
	log_step(
		f"Wrote {output_path} ({grid.week_count} week column(s), "
		+ f"{payload['calendar']['total']} commit(s))"
	)
	if payload["malformed_records"]:
		log_step(f"Dropped {payload['malformed_records']} record(s) with malformed timestamps.")
	usage = client.api_usage_snapshot()
	log_step(f"GitHub API usage: calls={usage.get('api_call_count', 0)}")
	return 0


if __name__ == "__main__":
	sys.exit(main())
