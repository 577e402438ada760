"""Console logger with optional per-level message retention."""

import enum
import sys


class LogLevel(enum.Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    DIAG = "diag"


class Logger:
    """Print-based logger.

    ``diag`` lines are only printed when ``enable_diag`` is set, which is how
    the strategies stay silent when used as a library. With ``retain`` set,
    printed and suppressed messages are also kept in ``messages`` by level;
    otherwise the logger holds no state between calls.
    """

    def __init__(self, enable_diag=False, stream=None, err_stream=None, retain=False):
        self.enable_diag = enable_diag
        self.retain = retain
        self._stream = stream
        self._err_stream = err_stream
        self.messages = {level.value: [] for level in LogLevel}

    def _log(self, level, msg, prefix, file):
        if self.retain:
            self.messages[level.value].append(msg)
        if level != LogLevel.DIAG or self.enable_diag:
            print(f"{prefix} {msg}", file=file)

    def info(self, msg):
        self._log(LogLevel.INFO, msg, "[+]", self._stream or sys.stdout)

    def warn(self, msg):
        self._log(LogLevel.WARN, msg, "[!] WARNING:", self._err_stream or sys.stderr)

    def error(self, msg):
        self._log(LogLevel.ERROR, msg, "[X] ERROR:", self._err_stream or sys.stderr)

    def diag(self, msg):
        self._log(LogLevel.DIAG, msg, "[diag]", self._stream or sys.stdout)
