"""Tests for the command-line interface."""

import asyncio
import io
import os
import re
import shlex
import sys

import pytest

from lull import __version__
from lull.cli import DEFAULT_LATENCY_MS, build_parser, main, run
from lull.handlers import PrintHandler


def parse(*argv):
    return build_parser().parse_args(list(argv))


class Pipe:
    """A real OS pipe standing in for stdin."""

    def __init__(self):
        read_fd, self._write_fd = os.pipe()
        self.reader = os.fdopen(read_fd, "rb")

    def write(self, data: bytes) -> None:
        os.write(self._write_fd, data)

    def close(self) -> None:
        if self._write_fd is not None:
            os.close(self._write_fd)
            self._write_fd = None


@pytest.fixture
def stdin():
    pipe = Pipe()
    yield pipe
    pipe.close()


class TestParser:
    def test_defaults(self):
        args = parse()
        assert args.latency == DEFAULT_LATENCY_MS == 1500
        assert args.bootstrap is False
        assert args.timestamp is False
        assert args.command is None
        assert args.ignore_errors is False
        assert args.pipe is False
        assert args.verbose is False

    def test_short_options(self):
        args = parse("-l", "200", "-b", "-t", "-e", "make test", "-i", "-p")
        assert args.latency == 200
        assert args.bootstrap is True
        assert args.timestamp is True
        assert args.command == "make test"
        assert args.ignore_errors is True
        assert args.pipe is True

    def test_long_options(self):
        args = parse("--latency=0", "--exec", "echo hi", "--ignore-errors")
        assert args.latency == 0
        assert args.command == "echo hi"
        assert args.ignore_errors is True

    def test_negative_latency_rejected(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse("-l", "-5")
        assert exc_info.value.code == 2
        assert "latency must be non-negative" in capsys.readouterr().err

    def test_non_numeric_latency_rejected(self):
        with pytest.raises(SystemExit) as exc_info:
            parse("--latency", "soon")
        assert exc_info.value.code == 2

    def test_unexpected_arguments_rejected(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse("extra")
        assert exc_info.value.code == 2
        assert "unrecognized arguments" in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert capsys.readouterr().out.strip() == f"lull {__version__}"

    @pytest.mark.parametrize("command", ["echo 'oops", ""])
    def test_invalid_exec_command_is_usage_error(self, command, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["-e", command])
        assert exc_info.value.code == 2
        assert "invalid --exec command" in capsys.readouterr().err


class TestRun:
    async def test_prints_count_per_burst(self, stdin):
        out = io.StringIO()
        task = asyncio.create_task(run(parse("-l", "50"), stdin=stdin.reader, stdout=out))

        stdin.write(b"a\nb\nc\n")
        await asyncio.sleep(0.2)
        stdin.write(b"d\n")
        await asyncio.sleep(0.2)
        assert out.getvalue() == "3\n1\n"

        stdin.close()
        assert await asyncio.wait_for(task, timeout=2.0) == 0

    async def test_timestamp_mode(self, stdin):
        out = io.StringIO()
        task = asyncio.create_task(run(parse("-l", "20", "-t"), stdin=stdin.reader, stdout=out))

        stdin.write(b"line\n")
        await asyncio.sleep(0.15)
        stdin.close()
        assert await asyncio.wait_for(task, timeout=2.0) == 0
        assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z\n$", out.getvalue())

    async def test_bootstrap_emits_without_input(self, stdin):
        out = io.StringIO()
        task = asyncio.create_task(run(parse("-b"), stdin=stdin.reader, stdout=out))

        await asyncio.sleep(0.1)
        assert out.getvalue() == "1\n"
        stdin.close()
        assert await asyncio.wait_for(task, timeout=2.0) == 0

    async def test_end_of_input_exits_immediately(self):
        out = io.StringIO()
        code = await asyncio.wait_for(run(parse("-l", "5000"), stdin=io.BytesIO(b"a\nb\n"), stdout=out), timeout=2.0)
        assert code == 0
        assert out.getvalue() == ""

    async def test_failing_command_exits_with_its_code(self, stdin, capsys):
        cmd = shlex.join([sys.executable, "-c", "raise SystemExit(3)"])
        task = asyncio.create_task(run(parse("-l", "10", "-e", cmd), stdin=stdin.reader))

        stdin.write(b"x\n")
        assert await asyncio.wait_for(task, timeout=5.0) == 3
        err = capsys.readouterr().err
        assert err.startswith("Error: command ")
        assert "exited with a code of 3" in err

    async def test_ignore_errors_keeps_running(self, stdin, tmp_path):
        marker = tmp_path / "runs"
        code = f"open({str(marker)!r}, 'a').write('x'); raise SystemExit(1)"
        cmd = shlex.join([sys.executable, "-c", code])
        task = asyncio.create_task(run(parse("-l", "10", "-e", cmd, "-i"), stdin=stdin.reader))

        stdin.write(b"x\n")
        await asyncio.sleep(0.5)
        stdin.write(b"y\n")
        await asyncio.sleep(0.5)
        assert not task.done()
        assert marker.read_text() == "xx"

        stdin.close()
        assert await asyncio.wait_for(task, timeout=2.0) == 0

    async def test_pipe_passes_count_to_command(self, stdin, tmp_path):
        target = tmp_path / "piped"
        code = f"import sys; open({str(target)!r}, 'a').write(sys.stdin.read())"
        cmd = shlex.join([sys.executable, "-c", code])
        task = asyncio.create_task(run(parse("-l", "30", "-e", cmd, "-p"), stdin=stdin.reader))

        stdin.write(b"1\n2\n")
        await asyncio.sleep(0.6)
        stdin.close()
        assert await asyncio.wait_for(task, timeout=2.0) == 0
        assert target.read_text() == "2\n"

    async def test_strips_line_endings(self, stdin, monkeypatch):
        seen = []
        original = PrintHandler.__call__

        def spy(self, events, done):
            seen.extend(e.payload for e in events)
            original(self, events, done)

        monkeypatch.setattr(PrintHandler, "__call__", spy)
        task = asyncio.create_task(run(parse("-l", "20"), stdin=stdin.reader, stdout=io.StringIO()))
        stdin.write(b"one\r\ntwo\n")
        await asyncio.sleep(0.15)
        stdin.close()
        await asyncio.wait_for(task, timeout=2.0)
        assert seen == [b"one", b"two"]
