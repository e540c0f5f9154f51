# -*- coding: utf-8 -*-
import json
import multiprocessing
from dataclasses import dataclass, field, replace
from typing import Optional

from keyutils.errors import ConfigError

DEFAULT_COUNT = 1
DEFAULT_WORKERS = 1
DEFAULT_PROGRESS_INTERVAL = 100_000
# Attempts a parallel worker accumulates locally before publishing them
WORKER_FLUSH_INTERVAL = 1_000


@dataclass(frozen=True)
class MatchConfig:
    prefix: str = ""
    suffix: str = ""
    ignore_case: bool = False

    def validate(self) -> None:
        if not self.prefix and not self.suffix:
            raise ConfigError("Must specify a prefix (--starts-with) or a suffix (--ends-with)")

    def describe(self) -> str:
        parts = []
        if self.prefix:
            parts.append('starts with "{}"'.format(self.prefix))
        if self.suffix:
            parts.append('ends with "{}"'.format(self.suffix))
        text = " and ".join(parts) or "anything"
        if self.ignore_case:
            text += " (ignoring case)"
        return text


@dataclass
class GrindSettings:
    match: MatchConfig = field(default_factory=MatchConfig)
    count: int = DEFAULT_COUNT
    workers: int = DEFAULT_WORKERS
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL
    output_dir: Optional[str] = None

    def validate(self) -> None:
        self.match.validate()
        if self.count < 1:
            raise ConfigError("count must be at least 1, got {}".format(self.count))
        if self.workers < 1:
            raise ConfigError("workers must be at least 1, got {}".format(self.workers))
        if self.progress_interval < 0:
            raise ConfigError(
                "progress interval must be >= 0 (0 disables), got {}".format(self.progress_interval)
            )


def resolve_workers(workers: int) -> int:
    """0 means one worker per CPU."""
    return workers or multiprocessing.cpu_count()


def _group(cfg: dict, name: str) -> dict:
    value = cfg.get(name, {})
    return value if isinstance(value, dict) else {}


def load_settings(path: str, defaults: Optional[GrindSettings] = None) -> GrindSettings:
    """
    Read grind settings from a JSON file.

    Keys live in nested groups (``search``, ``performance``, ``output``) with
    flat top-level fallbacks; anything missing keeps the value from ``defaults``.
    """
    defaults = defaults or GrindSettings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError("Could not load {}: {}".format(path, e)) from e
    if not isinstance(cfg, dict):
        raise ConfigError("{} must contain a JSON object".format(path))

    search_cfg = _group(cfg, "search")
    perf_cfg = _group(cfg, "performance")
    out_cfg = _group(cfg, "output")

    match = defaults.match
    prefix = search_cfg.get("startsWith", cfg.get("startsWith", match.prefix))
    suffix = search_cfg.get("endsWith", cfg.get("endsWith", match.suffix))
    ignore_case = search_cfg.get("ignoreCase", cfg.get("ignoreCase", match.ignore_case))
    count = search_cfg.get("count", cfg.get("count", defaults.count))
    workers = perf_cfg.get("workers", cfg.get("workers", defaults.workers))
    progress_interval = perf_cfg.get(
        "progressInterval", cfg.get("progressInterval", defaults.progress_interval)
    )
    output_dir = out_cfg.get("dir", cfg.get("outputDir", defaults.output_dir))

    try:
        return replace(
            defaults,
            match=MatchConfig(prefix=str(prefix or ""), suffix=str(suffix or ""), ignore_case=bool(ignore_case)),
            count=int(count),
            workers=resolve_workers(int(workers)),
            progress_interval=int(progress_interval),
            output_dir=output_dir or None,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError("Invalid value in {}: {}".format(path, e)) from e
