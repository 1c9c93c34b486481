import os

import yaml


DEFAULT_USERNAME = "octocat"
DEFAULT_WEEK_START = "Sun"
DEFAULT_WINDOW_DAYS = 365
DEFAULT_PER_PAGE = 100
DEFAULT_DATE_FIELD = "commit.author.date"
DEFAULT_AUTHOR_FIELD = "author.login"


#============================================
def get_repo_root() -> str:
	"""
	Return repository root based on this module location.
	"""
	module_dir = os.path.dirname(os.path.abspath(__file__))
	pipeline_dir = os.path.dirname(module_dir)
	return os.path.dirname(pipeline_dir)


#============================================
def resolve_settings_path(path_text: str) -> str:
	"""
	Resolve settings path against cwd first, then repo root.
	"""
	if os.path.isabs(path_text):
		return path_text
	cwd_candidate = os.path.abspath(path_text)
	if os.path.isfile(cwd_candidate):
		return cwd_candidate
	repo_root = get_repo_root()
	repo_candidate = os.path.join(repo_root, path_text)
	return os.path.abspath(repo_candidate)


#============================================
def load_settings(path_text: str) -> tuple[dict, str]:
	"""
	Load YAML settings dict and return it with resolved path.
	"""
	resolved_path = resolve_settings_path(path_text)
	if not os.path.isfile(resolved_path):
		return {}, resolved_path
	with open(resolved_path, "r", encoding="utf-8") as handle:
		data = yaml.safe_load(handle.read())
	if data is None:
		return {}, resolved_path
	if not isinstance(data, dict):
		raise RuntimeError(f"Settings file must contain a mapping: {resolved_path}")
	return data, resolved_path


#============================================
def get_nested_value(settings: dict, keys: list[str], default_value):
	"""
	Read nested mapping value by key path.
	"""
	current = settings
	for key in keys:
		if not isinstance(current, dict):
			return default_value
		if key not in current:
			return default_value
		current = current[key]
	return current


#============================================
def get_setting_str(settings: dict, keys: list[str], default_value: str) -> str:
	"""
	Read a string setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	return str(value).strip()


#============================================
def get_setting_int(settings: dict, keys: list[str], default_value: int) -> int:
	"""
	Read an integer setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	if isinstance(value, bool):
		raise RuntimeError(f"Invalid integer for setting path {'.'.join(keys)}: {value}")
	try:
		return int(value)
	except (TypeError, ValueError) as error:
		raise RuntimeError(f"Invalid integer for setting path {'.'.join(keys)}: {value}") from error


#============================================
def get_setting_bool(settings: dict, keys: list[str], default_value: bool) -> bool:
	"""
	Read a boolean setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if isinstance(value, bool):
		return value
	if isinstance(value, str):
		text = value.strip().lower()
		if text in {"1", "true", "yes", "on"}:
			return True
		if text in {"0", "false", "no", "off"}:
			return False
		raise RuntimeError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}")
	if isinstance(value, int):
		return value != 0
	if value is None:
		return default_value
	raise RuntimeError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}")


#============================================
def get_github_username(settings: dict, default_value: str = DEFAULT_USERNAME) -> str:
	"""
	Resolve GitHub username from settings with fallback.
	"""
	value = get_setting_str(settings, ["github", "username"], "").strip()
	if value:
		return value
	return default_value


#============================================
def get_github_token(settings: dict) -> str:
	return get_setting_str(settings, ["github", "token"], "")


#============================================
def get_calendar_settings(settings: dict) -> dict:
	"""
	Read calendar layout and collection options with defaults.
	"""
	days = get_setting_int(settings, ["calendar", "days"], DEFAULT_WINDOW_DAYS)
	if days < 0:
		raise RuntimeError(f"Invalid settings: calendar.days must be >= 0; got {days}")
	per_page = get_setting_int(settings, ["calendar", "per_page"], DEFAULT_PER_PAGE)
	return {
		"week_start": get_setting_str(settings, ["calendar", "week_start"], DEFAULT_WEEK_START),
		"days": days,
		"per_page": per_page,
		"date_field": get_setting_str(settings, ["calendar", "date_field"], DEFAULT_DATE_FIELD),
		"author_field": get_setting_str(settings, ["calendar", "author_field"], DEFAULT_AUTHOR_FIELD),
		"author_only": get_setting_bool(settings, ["calendar", "author_only"], True),
		"include_forks": get_setting_bool(settings, ["calendar", "include_forks"], True),
	}


#============================================
def resolve_user_scoped_out_path(path_text: str, default_path_text: str, user: str) -> str:
	"""
	Scope default out/ paths under out/<user>/ while preserving custom paths.
	"""
	path_value = (path_text or "").strip()
	default_value = (default_path_text or "").strip()
	if path_value != default_value:
		return path_value
	if not default_value.startswith("out/"):
		return path_value
	tail = default_value[len("out/"):].lstrip("/")
	user_value = (user or "").strip() or DEFAULT_USERNAME
	return os.path.join("out", user_value, tail)
