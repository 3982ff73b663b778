"""
Tests for the sandbox runner. Python snippets run on the test interpreter.
"""

import asyncio
import os

import pytest

from codeteach.exceptions import SandboxExecutionError
from codeteach.sandbox import NO_OUTPUT, SandboxRunner, normalize_language, summarize_error


@pytest.fixture
def runner():
    return SandboxRunner(node_binary="definitely-not-node", timeout_ms=3000, max_iterations=50)


class TestHelpers:
    """Test language normalisation and error summaries."""

    @pytest.mark.parametrize("given,expected", [
        ("py", "python"),
        ("JS", "javascript"),
        (None, "javascript"),
        ("python", "python"),
    ])
    def test_normalize_language(self, given, expected):
        assert normalize_language(given) == expected

    def test_summarize_python_traceback(self):
        stderr = (
            "Traceback (most recent call last):\n"
            '  File "<stdin>", line 1, in <module>\n'
            "ZeroDivisionError: division by zero\n"
        )
        assert summarize_error(stderr) == "ZeroDivisionError: division by zero"

    def test_summarize_without_error_line(self):
        assert summarize_error("something odd\nlast words\n") == "last words"

    def test_summarize_empty(self):
        assert summarize_error("") == "Process exited with an error"

    def test_timeout_is_capped(self):
        assert SandboxRunner(timeout_ms=60000).timeout_ms == 5000


class TestExecute:
    """Test single runs."""

    @pytest.mark.asyncio
    async def test_prints_output(self, runner):
        result = await runner.execute("print('hello')\nprint(2 + 3)", language="python")

        assert result.success is True
        assert result.output == "hello\n5"
        assert result.error is None
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_no_output_placeholder(self, runner):
        result = await runner.execute("x = 1", language="py")
        assert result.output == NO_OUTPUT

    @pytest.mark.asyncio
    async def test_error_keeps_partial_output(self, runner):
        result = await runner.execute("print('before')\n1 / 0", language="python")

        assert result.success is False
        assert result.error == "ZeroDivisionError: division by zero"
        assert result.output == "before"

    @pytest.mark.asyncio
    async def test_timeout(self, runner):
        result = await runner.execute("while True:\n    pass", language="python", timeout_ms=300)

        assert result.success is False
        assert result.error == "Execution timed out after 300ms"

    @pytest.mark.asyncio
    async def test_cancelled_run_kills_child(self, runner, monkeypatch):
        spawned = []
        spawn = asyncio.create_subprocess_exec

        async def recording_spawn(*args, **kwargs):
            proc = await spawn(*args, **kwargs)
            spawned.append(proc)
            return proc

        monkeypatch.setattr(asyncio, "create_subprocess_exec", recording_spawn)

        task = asyncio.create_task(runner.execute("while True:\n    pass", language="python"))
        for _ in range(100):
            if spawned:
                break
            await asyncio.sleep(0.02)
        await asyncio.sleep(0.2)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        proc = spawned[0]
        assert proc.returncode is not None
        with pytest.raises(ProcessLookupError):
            os.kill(proc.pid, 0)

    @pytest.mark.asyncio
    async def test_unsupported_language(self, runner):
        result = await runner.execute("puts 1", language="ruby")

        assert result.success is False
        assert "Unsupported language 'ruby'" in result.error

    @pytest.mark.asyncio
    async def test_missing_runtime(self, runner):
        result = await runner.execute("console.log(1)", language="javascript")

        assert result.success is False
        assert "javascript runtime not available" in result.error


class TestMeasure:
    """Test repeated timing."""

    @pytest.mark.asyncio
    async def test_python_stats(self, runner):
        stats = await runner.measure("sum(range(100))", iterations=5, language="python")

        assert stats["iterations"] == 5
        assert set(stats) == {"iterations", "averageTime", "minTime", "maxTime", "totalTime"}
        assert stats["minTime"] <= stats["averageTime"] <= stats["maxTime"]

    @pytest.mark.asyncio
    async def test_iterations_are_clamped(self, runner):
        stats = await runner.measure("pass", iterations=10_000, language="python")
        assert stats["iterations"] == 50

        stats = await runner.measure("pass", iterations=0, language="python")
        assert stats["iterations"] == 1

    @pytest.mark.asyncio
    async def test_prints_inside_measured_code_are_silenced(self, runner):
        stats = await runner.measure("print('noise')", iterations=3, language="python")
        assert stats["iterations"] == 3

    @pytest.mark.asyncio
    async def test_unsupported_language_raises(self, runner):
        with pytest.raises(SandboxExecutionError):
            await runner.measure("x", language="cobol")
