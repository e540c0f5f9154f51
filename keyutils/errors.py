# -*- coding: utf-8 -*-


class KeyUtilsError(Exception):
    """Base class for every error raised by keyutils."""


class ConfigError(KeyUtilsError, ValueError):
    """Invalid search configuration (no constraint, bad count, bad file...)."""


class ParseError(KeyUtilsError, ValueError):
    """Malformed secret-key input."""


class DecodeError(KeyUtilsError, ValueError):
    """Text that is not valid base58."""


class WorkerError(KeyUtilsError, RuntimeError):
    def __init__(self, index: int, message: str):
        super().__init__("Worker {} failed: {}".format(index, message))
        self.index = index
        self.message = message
