"""Test doubles: a simulated clock, scripted decoders and helpers that
build synthetic DerivedData trees."""

from __future__ import annotations

import heapq
import itertools
import os
import plistlib
from pathlib import Path

from xcharvest.core.result import CommandResult

EPOCH = 1_700_000_000.0


class FakeClock:
    """Clock whose sleeps advance simulated time instantly.

    Events registered with at() run when simulated time reaches them,
    in time order, before the sleep that crossed them returns.
    """

    def __init__(self, epoch: float = EPOCH):
        self.epoch = epoch
        self.now = 0.0
        self.sleeps: list[float] = []
        self._events: list = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self.epoch + self.now

    def monotonic(self) -> float:
        return self.now

    def at(self, seconds: float, action) -> None:
        """Run action once simulated time reaches seconds."""
        if seconds <= self.now:
            action()
            return
        heapq.heappush(self._events, (seconds, next(self._seq), action))

    def every(self, start: float, stop: float, step: float, action) -> None:
        t = start
        while t <= stop:
            self.at(t, action)
            t += step

    def advance(self, seconds: float) -> None:
        target = self.now + max(0.0, seconds)
        while self._events and self._events[0][0] <= target:
            when, _, action = heapq.heappop(self._events)
            self.now = when
            action()
        self.now = target

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


def run(stdout: str = "", exit_code: int = 0, stderr: str = "",
        timed_out: bool = False) -> CommandResult:
    return CommandResult(
        argv=["fake"],
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        timed_out=timed_out,
    )


def _next(script: list):
    item = script.pop(0) if len(script) > 1 else script[0]
    if isinstance(item, BaseException):
        raise item
    return item


class ScriptedLogDecoder:
    """Log decoder that replays canned runs; the last one repeats."""

    def __init__(self, *runs, clock: FakeClock | None = None):
        self.runs = list(runs)
        self.clock = clock
        self.calls: list[Path] = []
        self.call_times: list[float] = []

    def decode(self, log_path: Path) -> CommandResult:
        self.calls.append(log_path)
        if self.clock is not None:
            self.call_times.append(self.clock.monotonic())
        return _next(self.runs)


class ScriptedBundleTool:
    """Bundle tool that replays canned summary and tests runs."""

    def __init__(self, summary=(), tests=(), clock: FakeClock | None = None):
        self.summary_runs = list(summary)
        self.tests_runs = list(tests) or [run(exit_code=1, stderr="no tests")]
        self.clock = clock
        self.summary_calls: list[float] = []
        self.tests_calls = 0

    def summary(self, bundle: Path, timeout: float | None = None) -> CommandResult:
        self.summary_calls.append(
            self.clock.monotonic() if self.clock is not None else 0.0
        )
        return _next(self.summary_runs)

    def tests(self, bundle: Path, timeout: float | None = None) -> CommandResult:
        self.tests_calls += 1
        return _next(self.tests_runs)


def set_mtime(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


def write_artifact(path: Path, content: str | bytes, mtime: float) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content)
    set_mtime(path, mtime)
    return path


def make_output_dir(root: Path, dirname: str, workspace: str | Path | None,
                    metadata: bytes | None = None) -> Path:
    """Create <root>/<dirname> with an info.plist recording workspace."""
    output_dir = root / dirname
    output_dir.mkdir(parents=True, exist_ok=True)
    info = output_dir / "info.plist"
    if metadata is not None:
        info.write_bytes(metadata)
    elif workspace is not None:
        with open(info, "wb") as f:
            plistlib.dump({"WorkspacePath": str(workspace)}, f)
    return output_dir


def make_bundle(path: Path, *, staging: bool = False, members: bool = True,
                database_bytes: int = 1024, mtime: float | None = None) -> Path:
    """Create a .xcresult bundle directory.

    database_bytes is allocated sparsely, so large sizes are cheap.
    """
    path.mkdir(parents=True, exist_ok=True)
    if staging:
        (path / "Staging").mkdir(exist_ok=True)
    if members:
        add_bundle_members(path, database_bytes)
    if mtime is not None:
        set_mtime(path, mtime)
    return path


def add_bundle_members(path: Path, database_bytes: int = 1024) -> None:
    (path / "Info.plist").write_bytes(b"<plist/>")
    with open(path / "database.sqlite3", "wb") as f:
        f.truncate(database_bytes)
    data = path / "Data"
    data.mkdir(exist_ok=True)
    (data / "data.0").write_bytes(b"x" * 64)


def grow(path: Path, extra: int = 128) -> None:
    with open(path, "ab") as f:
        f.write(b"y" * extra)
