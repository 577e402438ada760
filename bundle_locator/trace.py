"""Locate the .deps.json by reading the app host's own trace output.

With host tracing enabled the app host logs, before any managed code runs,
a line such as::

    DepsJson Offset:[1f4c0] Size[9a3]

The child is started with an invalid startup hook so it aborts before
reaching the managed ``Main``; it is killed as soon as the line is seen.
"""

import os
import re
import subprocess
import sys
import threading

from .errors import PayloadOutOfBounds, TraceNotFound
from .location import ByteRange
from .locator import BundleLocator


# region Configuration

TRACE_ENVIRONMENT = {
    "COREHOST_TRACE": "1",
    "COREHOST_TRACE_VERBOSITY": "3",
    # A single space is not a valid startup hook assembly name: the runtime
    # throws from StartupHookProvider.ProcessStartupHooks before Main.
    "DOTNET_STARTUP_HOOKS": " ",
}

DEFAULT_TIMEOUT = 2.0

DEPS_JSON_PATTERN = re.compile(r"DepsJson Offset:\[([0-9a-f]+)\] Size\[([0-9a-f]+)\]", re.IGNORECASE)

# endregion Configuration


# region Child Process Runner

class PopenChild:
    """A started app host whose stderr is consumed line by line."""

    def __init__(self, proc):
        self._proc = proc

    def stderr_lines(self):
        for line in self._proc.stderr:
            yield line.rstrip('\r\n')

    def terminate(self):
        if self._proc.poll() is None:
            self._proc.kill()
        self._proc.wait()

    def close(self):
        if self._proc.stderr is not None:
            self._proc.stderr.close()


class SubprocessRunner:
    def start(self, argv, env):
        kwargs = {}
        if sys.platform == 'win32':
            kwargs['creationflags'] = subprocess.CREATE_NO_WINDOW
        proc = subprocess.Popen(
            argv,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            universal_newlines=True,
            errors='replace',
            **kwargs
        )
        return PopenChild(proc)

# endregion Child Process Runner


class TraceCapture:
    """Feeds child stderr lines to ``on_line`` until a match or EOF.

    ``on_line`` runs synchronously on the reader thread. On the first
    matching line it records the groups and calls ``stop()`` in the same
    invocation, so no later line can be processed and the child is killed
    before the waiting thread is released.
    """

    def __init__(self, child):
        self.child = child
        self.match = None
        self.done = threading.Event()
        self._stopped = False
        self._lock = threading.Lock()

    def stop(self):
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        self.child.terminate()
        self.done.set()

    @property
    def stopped(self):
        return self._stopped

    def on_line(self, line):
        if self._stopped:
            return
        m = DEPS_JSON_PATTERN.search(line)
        if m:
            self.match = (int(m.group(1), 16), int(m.group(2), 16))
            self.stop()

    def pump(self):
        try:
            for line in self.child.stderr_lines():
                if self._stopped:
                    break
                self.on_line(line)
        except (OSError, ValueError):
            # The pipe is closed under us once the child is killed.
            if not self._stopped:
                raise
        finally:
            self.done.set()


class ProcessTraceStrategy(BundleLocator):
    """Runs the app host with host tracing on and parses its stderr."""

    name = "trace"

    def __init__(self, timeout=DEFAULT_TIMEOUT, runner=None, logger=None):
        super().__init__(logger)
        self.timeout = timeout
        self.runner = runner or SubprocessRunner()

    def _environment(self):
        env = dict(os.environ)
        env.update(TRACE_ENVIRONMENT)
        return env

    def locate(self, path):
        path = os.fspath(path)
        try:
            child = self.runner.start([path], self._environment())
        except OSError as e:
            raise TraceNotFound(self.timeout, f"could not start {path}: {e}") from e

        capture = TraceCapture(child)
        reader = threading.Thread(target=capture.pump, name="apphost-stderr", daemon=True)
        reader.start()
        try:
            finished = capture.done.wait(self.timeout)
            match = capture.match
            capture.stop()
            reader.join(self.timeout)
        finally:
            child.close()

        if match is None:
            reason = "timed out" if not finished else "app host exited without a DepsJson line"
            raise TraceNotFound(self.timeout, reason)

        offset, size = match
        self.logger.diag(f"{self.name}: DepsJson Offset:[{offset:x}] Size[{size:x}]")
        location = ByteRange(offset, size)
        file_length = os.path.getsize(path)
        if location.end > file_length:
            raise PayloadOutOfBounds(location, file_length)
        return location

    def __repr__(self):
        return f"ProcessTraceStrategy(timeout={self.timeout:g})"
