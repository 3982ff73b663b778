"""
Sandboxed code execution for the playground and the execute/compare/measure tools.

User code runs in a short-lived child process fed through stdin, with a
minimal environment and a hard wall-clock limit. Failures of the user's code
are expected and are reported as ExecutionResult(success=False), never raised
to the caller.
"""

import asyncio
import json
import logging
import os
import re
import sys
import time
from typing import Any, Dict, List, Optional

from .core.config import settings
from .exceptions import SandboxExecutionError
from .models import ExecutionResult
from .parsing import LANGUAGE_ALIASES

logger = logging.getLogger(__name__)

NO_OUTPUT = "(no output)"
HARD_TIMEOUT_MS = 5000
ERROR_LINE = re.compile(r"^[A-Za-z_.]*(?:Error|Exception)\b.*")

SUPPORTED_LANGUAGES = ("javascript", "python")

PYTHON_TIMING_HARNESS = """\
import json, time
_code = compile({source!r}, "<sandbox>", "exec")
_times = []
for _ in range({iterations}):
    _start = time.perf_counter()
    try:
        exec(_code, {{"__name__": "__sandbox__", "print": lambda *a, **k: None}})
    except Exception:
        pass
    _times.append((time.perf_counter() - _start) * 1000)
print(json.dumps(_times))
"""

JAVASCRIPT_TIMING_HARNESS = """\
const quiet = {{ log() {{}}, error() {{}}, warn() {{}}, info() {{}} }};
const fn = new Function("console", {source});
const times = [];
for (let i = 0; i < {iterations}; i++) {{
  const start = process.hrtime.bigint();
  try {{ fn(quiet); }} catch (e) {{}}
  times.push(Number(process.hrtime.bigint() - start) / 1e6);
}}
process.stdout.write(JSON.stringify(times));
"""


def normalize_language(language: Optional[str]) -> str:
    key = (language or "javascript").strip().lower()
    return LANGUAGE_ALIASES.get(key, key)


def summarize_error(stderr: str) -> str:
    """Pick the most useful line out of a traceback / stack trace."""
    lines = [line.strip() for line in stderr.splitlines() if line.strip()]
    matches = [line for line in lines if ERROR_LINE.match(line)]
    if matches:
        return matches[-1]
    return lines[-1] if lines else "Process exited with an error"


class SandboxRunner:
    """Runs JavaScript (node) or Python snippets in a child process."""

    def __init__(
        self,
        node_binary: Optional[str] = None,
        python_binary: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        max_iterations: Optional[int] = None,
    ):
        self.node_binary = node_binary or settings.NODE_BINARY
        self.python_binary = python_binary or sys.executable
        self.timeout_ms = min(timeout_ms or settings.SANDBOX_TIMEOUT_MS, HARD_TIMEOUT_MS)
        self.max_iterations = max_iterations or settings.SANDBOX_MAX_ITERATIONS

    def _command(self, language: str) -> List[str]:
        if language == "javascript":
            return [self.node_binary, "-"]
        if language == "python":
            return [self.python_binary, "-I", "-"]
        raise SandboxExecutionError(
            f"Unsupported language '{language}'. Supported: {', '.join(SUPPORTED_LANGUAGES)}"
        )

    async def _run(self, language: str, program: str, timeout_ms: int) -> str:
        """
        Run a program and return its stdout.

        Raises:
            SandboxExecutionError: unsupported language, missing runtime,
                timeout, or non-zero exit (message is the summarised error)
        """
        command = self._command(language)
        env = {"PATH": os.environ.get("PATH", ""), "PYTHONIOENCODING": "utf-8"}

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except FileNotFoundError as e:
            raise SandboxExecutionError(f"{language} runtime not available ({command[0]})") from e

        try:
            stdout_b, stderr_b = await asyncio.wait_for(
                proc.communicate(program.encode()), timeout=timeout_ms / 1000
            )
        except asyncio.TimeoutError as e:
            await _reap(proc)
            raise SandboxExecutionError(f"Execution timed out after {timeout_ms}ms") from e
        except BaseException:
            # Cancelled caller: the child must not outlive the request.
            await asyncio.shield(_reap(proc))
            raise

        stdout = stdout_b.decode(errors="replace")
        if proc.returncode != 0:
            raise SandboxExecutionError(summarize_error(stderr_b.decode(errors="replace")), output=stdout)
        return stdout

    async def execute(
        self,
        source_code: str,
        language: str = "javascript",
        timeout_ms: Optional[int] = None,
    ) -> ExecutionResult:
        """Run user code once. Never raises for failures of the code itself."""
        language = normalize_language(language)
        timeout_ms = min(timeout_ms or self.timeout_ms, self.timeout_ms)
        start = time.perf_counter()

        try:
            stdout = await self._run(language, source_code, timeout_ms)
        except SandboxExecutionError as e:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.info(f"Sandbox {language} run failed after {duration_ms}ms: {e}")
            partial = e.output.rstrip("\n")
            return ExecutionResult(
                success=False,
                output=partial or None,
                error=str(e),
                duration_ms=duration_ms,
            )

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        output = stdout.rstrip("\n")
        return ExecutionResult(success=True, output=output or NO_OUTPUT, duration_ms=duration_ms)

    async def measure(
        self,
        source_code: str,
        iterations: int = 100,
        language: str = "javascript",
    ) -> Dict[str, Any]:
        """
        Time repeated runs of a snippet inside a single child process.

        Raises:
            SandboxExecutionError: the timing harness itself could not run
        """
        language = normalize_language(language)
        iterations = max(1, min(iterations, self.max_iterations))

        if language == "python":
            program = PYTHON_TIMING_HARNESS.format(source=source_code, iterations=iterations)
        elif language == "javascript":
            program = JAVASCRIPT_TIMING_HARNESS.format(source=json.dumps(source_code), iterations=iterations)
        else:
            self._command(language)
            raise SandboxExecutionError(f"Unsupported language '{language}'")

        stdout = await self._run(language, program, self.timeout_ms)
        try:
            times = json.loads(stdout.strip().splitlines()[-1])
        except (IndexError, json.JSONDecodeError) as e:
            raise SandboxExecutionError("Timing harness produced no measurements") from e

        total = sum(times)
        return {
            "iterations": iterations,
            "averageTime": round(total / len(times), 4),
            "minTime": round(min(times), 4),
            "maxTime": round(max(times), 4),
            "totalTime": round(total, 4),
        }


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill the child if it is still running and wait for it to exit."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


sandbox = SandboxRunner()
