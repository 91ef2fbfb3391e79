"""Build configuration from .texdrafts.yml and command-line overrides."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .corpus.paths import canonicalize

CONFIG_FILENAME = ".texdrafts.yml"

# camelCase spellings accepted alongside the snake_case field names
_ALIASES = {
    "maxDrafts": "max_drafts",
    "outputDir": "output_dir",
    "commitMessage": "commit_message",
    "wordcountFiles": "wordcount_files",
    "wordcountMacro": "wordcount_macro",
    "excludeFiles": "exclude_files",
}


class ConfigError(ValueError):
    """Raised when configuration is invalid. Fatal before any work starts."""


@dataclass(frozen=True)
class BuildConfig:
    compiler: str = "pdflatex"
    max_drafts: int = 3
    output_dir: Path = Path("drafts")
    biber: bool = True
    commit_message: str = "Update drafts"
    wordcount_files: tuple[str, ...] = ()
    wordcount_macro: str = "wordcount"
    exclude_files: tuple[str, ...] = ()
    jobs: int = 1
    source: Path | None = field(default=None, compare=False)

    def output_path(self, corpus_root: Path) -> Path:
        if self.output_dir.is_absolute():
            return self.output_dir
        return corpus_root / self.output_dir

    def with_overrides(self, **overrides: Any) -> "BuildConfig":
        """Apply command-line values; None means "not given"."""
        given = {k: v for k, v in overrides.items() if v is not None}
        if not given:
            return self
        return build_config({**_as_raw(self), **given}, source=self.source)


def _as_raw(config: BuildConfig) -> dict[str, Any]:
    return {
        "compiler": config.compiler,
        "max_drafts": config.max_drafts,
        "output_dir": config.output_dir,
        "biber": config.biber,
        "commit_message": config.commit_message,
        "wordcount_files": list(config.wordcount_files),
        "wordcount_macro": config.wordcount_macro,
        "exclude_files": list(config.exclude_files),
        "jobs": config.jobs,
    }


def parse_path_list(value: Any, *, key: str) -> tuple[str, ...]:
    """Accept a YAML list or a comma-separated string of document paths.

    Entries are trimmed and canonicalized; blank items between commas are dropped.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if not isinstance(item, str):
                raise ConfigError(f"{key}: entries must be strings, got {item!r}")
            items.extend(item.split(","))
    else:
        raise ConfigError(f"{key}: expected a list or comma-separated string")

    result = []
    for item in items:
        if not item.strip():
            continue
        try:
            result.append(canonicalize(item))
        except ValueError as e:
            raise ConfigError(f"{key}: {e}") from e
    return tuple(result)


def _positive_int(value: Any, *, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be a positive integer, got {value!r}") from e
    if number <= 0:
        raise ConfigError(f"{key} must be a positive integer, got {number}")
    return number


def _bool(value: Any, *, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "on", "1"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "off", "0"):
        return False
    raise ConfigError(f"{key} must be a boolean, got {value!r}")


def _string(value: Any, *, key: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{key} must be a non-empty string")
    return value.strip()


def build_config(data: dict[str, Any], source: Path | None = None) -> BuildConfig:
    """Validate a raw mapping into a BuildConfig.

    Raises:
        ConfigError: on any invalid value
    """
    raw = {_ALIASES.get(k, k): v for k, v in data.items()}
    defaults = BuildConfig()

    unknown = set(raw) - set(_as_raw(defaults))
    if unknown:
        raise ConfigError(f"unknown configuration keys: {', '.join(sorted(unknown))}")

    output_dir = raw.get("output_dir", defaults.output_dir)
    if not isinstance(output_dir, (str, Path)) or not str(output_dir).strip():
        raise ConfigError("output_dir must be a path")

    return BuildConfig(
        compiler=_string(raw.get("compiler", defaults.compiler), key="compiler"),
        max_drafts=_positive_int(raw.get("max_drafts", defaults.max_drafts), key="max_drafts"),
        output_dir=Path(str(output_dir).strip()),
        biber=_bool(raw.get("biber", defaults.biber), key="biber"),
        commit_message=_string(raw.get("commit_message", defaults.commit_message), key="commit_message"),
        wordcount_files=parse_path_list(raw.get("wordcount_files"), key="wordcount_files"),
        wordcount_macro=_string(raw.get("wordcount_macro", defaults.wordcount_macro), key="wordcount_macro").lstrip("\\"),
        exclude_files=parse_path_list(raw.get("exclude_files"), key="exclude_files"),
        jobs=_positive_int(raw.get("jobs", defaults.jobs), key="jobs"),
        source=source,
    )


def load_config(path: Path) -> BuildConfig:
    """Load configuration from a YAML file.

    Raises:
        ConfigError: if the file cannot be read, parsed or validated
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"malformed YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    return build_config(data, source=path)


def find_config(corpus_root: Path, explicit: Path | None = None) -> BuildConfig:
    """Configuration for a corpus: explicit file, else .texdrafts.yml, else defaults."""
    if explicit is not None:
        return load_config(explicit)
    candidate = corpus_root / CONFIG_FILENAME
    if candidate.is_file():
        return load_config(candidate)
    return BuildConfig()
