# -*- coding: utf-8 -*-
from keyutils.config import MatchConfig


def matches(candidate: str, cfg: MatchConfig) -> bool:
    """
    Accept ``candidate`` when it starts with ``cfg.prefix`` and ends with
    ``cfg.suffix``. An empty prefix or suffix always holds.
    """
    prefix, suffix = cfg.prefix, cfg.suffix
    if cfg.ignore_case:
        candidate = candidate.lower()
        prefix = prefix.lower()
        suffix = suffix.lower()
    return (not prefix or candidate.startswith(prefix)) and (
        not suffix or candidate.endswith(suffix)
    )
