"""Sandboxed execution of learner Python code in a child interpreter."""

from __future__ import annotations

import asyncio
import codecs
import json
import sys
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterator, Optional

from loguru import logger

from pytutor.config.settings import ExecutionMode, Settings


class ExecMode(str, Enum):
    SUBPROCESS = "subprocess"
    DRY_RUN = "dry_run"


RESULT_MARKER = "__pytutor_result__:"
READ_CHUNK = 64 * 1024

# Runs the learner file, then calls one function and prints its JSON result
_CALL_HARNESS = f"""
import json, runpy, sys
ns = runpy.run_path(sys.argv[1], run_name="__learner__")
name = sys.argv[2]
if not callable(ns.get(name)):
    raise NameError(f"name '{{name}}' is not defined")
value = ns[name](*json.loads(sys.argv[3]))
payload = json.dumps(value)
sys.stdout.write("\\n{RESULT_MARKER}" + payload + "\\n")
"""


@dataclass
class ExecResult:
    mode: ExecMode
    exit_code: int
    stdout: str
    stderr: str
    value: Any = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def error(self) -> Optional[str]:
        """Last line of stderr, usually the exception summary."""
        if self.success:
            return None
        lines = [l for l in self.stderr.strip().splitlines() if l.strip()]
        return lines[-1].strip() if lines else f"exit code {self.exit_code}"


class Executor:
    def __init__(self, settings: Optional[Settings] = None, force_dry_run: bool = False):
        self.settings = settings or Settings.load()
        self._force_dry_run = force_dry_run
        self._detected_mode: Optional[ExecMode] = None

    async def detect_mode(self) -> ExecMode:
        """Detect the best available execution mode."""
        if self._force_dry_run:
            return ExecMode.DRY_RUN

        configured = self.settings.execution_mode
        if configured != ExecutionMode.AUTO:
            return ExecMode(configured.value)

        try:
            proc = await asyncio.create_subprocess_exec(
                sys.executable, "-I", "-c", "pass",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            await asyncio.wait_for(proc.communicate(), timeout=5)
            if proc.returncode == 0:
                return ExecMode.SUBPROCESS
        except (FileNotFoundError, asyncio.TimeoutError):
            pass

        logger.warning("No usable Python interpreter for the sandbox, falling back to dry-run")
        return ExecMode.DRY_RUN

    async def warm_up(self) -> ExecMode:
        self._detected_mode = await self.detect_mode()
        return self._detected_mode

    async def _mode(self) -> ExecMode:
        if self._detected_mode is None:
            await self.warm_up()
        return self._detected_mode

    async def execute(
        self,
        code: str,
        on_output: Optional[Callable[[str], None]] = None,
    ) -> ExecResult:
        """Run code as a script, capturing stdout and any traceback."""
        if await self._mode() == ExecMode.DRY_RUN:
            return self._dry_run(code)

        with _learner_file(code) as path:
            proc = await asyncio.create_subprocess_exec(
                sys.executable, "-I", str(path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            return await self._stream_process(proc, on_output)

    async def call_function(self, code: str, function_name: str, args: list) -> ExecResult:
        """Run code, then call function_name(*args); the return value lands in .value."""
        if await self._mode() == ExecMode.DRY_RUN:
            result = self._dry_run(code)
            if result.success:
                result.exit_code = 1
                result.stderr = "RuntimeError: execution is disabled in dry-run mode"
            return result

        with _learner_file(code) as path:
            proc = await asyncio.create_subprocess_exec(
                sys.executable, "-I", "-c", _CALL_HARNESS,
                str(path), function_name, json.dumps(args),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            result = await self._stream_process(proc)

        return _split_return_value(result)

    def _dry_run(self, code: str) -> ExecResult:
        """Syntax check only."""
        import ast
        try:
            ast.parse(code)
            return ExecResult(
                mode=ExecMode.DRY_RUN, exit_code=0,
                stdout="[dry-run] Syntax OK", stderr="",
            )
        except SyntaxError as e:
            return ExecResult(
                mode=ExecMode.DRY_RUN, exit_code=1,
                stdout="", stderr=f"SyntaxError: {e.msg} (line {e.lineno})",
            )

    async def _stream_process(
        self,
        proc: asyncio.subprocess.Process,
        on_output: Optional[Callable[[str], None]] = None,
    ) -> ExecResult:
        """Stream stdout/stderr from a subprocess, calling on_output for each line."""
        stdout_lines: list[str] = []
        stderr_lines: list[str] = []

        async def _read_stream(
            stream: Optional[asyncio.StreamReader], lines: list[str], is_stderr: bool = False,
        ):
            if stream is None:
                return
            # Read in chunks: one line can exceed the StreamReader limit
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            pending: list[str] = []
            while True:
                chunk = await stream.read(READ_CHUNK)
                parts = decoder.decode(chunk, final=not chunk).split("\n")
                for part in parts[:-1]:
                    pending.append(part)
                    _emit("".join(pending).rstrip(), lines, is_stderr)
                    pending = []
                pending.append(parts[-1])
                if not chunk:
                    break
            tail = "".join(pending).rstrip()
            if tail:
                _emit(tail, lines, is_stderr)

        def _emit(decoded: str, lines: list[str], is_stderr: bool) -> None:
            lines.append(decoded)
            if on_output and not decoded.startswith(RESULT_MARKER):
                prefix = "[stderr] " if is_stderr else ""
                on_output(f"{prefix}{decoded}")

        try:
            await asyncio.wait_for(
                asyncio.gather(
                    _read_stream(proc.stdout, stdout_lines),
                    _read_stream(proc.stderr, stderr_lines, is_stderr=True),
                ),
                timeout=self.settings.timeout_seconds,
            )
            await proc.wait()
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Sandbox run killed after {}s", self.settings.timeout_seconds)
            stderr_lines.append(
                f"TimeoutError: execution timed out after {self.settings.timeout_seconds}s"
            )
            return ExecResult(
                mode=ExecMode.SUBPROCESS, exit_code=1,
                stdout="\n".join(stdout_lines), stderr="\n".join(stderr_lines),
            )

        return ExecResult(
            mode=ExecMode.SUBPROCESS,
            exit_code=proc.returncode if proc.returncode is not None else 1,
            stdout="\n".join(stdout_lines),
            stderr="\n".join(stderr_lines),
        )


@contextmanager
def _learner_file(code: str) -> Iterator[Path]:
    """Temp file holding learner code for the duration of a run."""
    with tempfile.NamedTemporaryFile(
        mode="w", suffix=".py", prefix="pytutor_", delete=False, encoding="utf-8",
    ) as tmp:
        tmp.write(code)
        path = Path(tmp.name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


def _split_return_value(result: ExecResult) -> ExecResult:
    """Separate the harness's result line from the learner's own output."""
    lines = result.stdout.split("\n")
    for i in range(len(lines) - 1, -1, -1):
        if lines[i].startswith(RESULT_MARKER):
            result.value = json.loads(lines[i][len(RESULT_MARKER):])
            # The harness writes a blank line before the marker
            kept = lines[:i]
            if kept and kept[-1] == "":
                kept = kept[:-1]
            result.stdout = "\n".join(kept)
            break
    return result


class SandboxHandle:
    """Owns one lazily built Executor.

    The first get() builds and warms the executor; concurrent callers wait
    on the same lock and share the result. A failed build is not cached.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        force_dry_run: bool = False,
        factory: Optional[Callable[[], Awaitable[Executor]]] = None,
    ):
        self.settings = settings
        self._force_dry_run = force_dry_run
        self._factory = factory or self._build
        self._executor: Optional[Executor] = None
        self._lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._executor is not None

    async def _build(self) -> Executor:
        executor = Executor(settings=self.settings, force_dry_run=self._force_dry_run)
        mode = await executor.warm_up()
        logger.info("Sandbox ready ({})", mode.value)
        return executor

    async def get(self) -> Executor:
        if self._executor is not None:
            return self._executor
        async with self._lock:
            if self._executor is None:
                self._executor = await self._factory()
        return self._executor
