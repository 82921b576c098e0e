"""Judging one single case: running the program and checking what it produced."""

from __future__ import annotations

import math
import os
import re
import shlex
import shutil
import subprocess
import sys
import threading
import time
from collections.abc import Mapping
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Union

from lemonjudge.comparison import (
    Verdict,
    compare_ignore_spaces,
    compare_line_by_line,
    compare_real_numbers,
    compare_with_diff,
)
from lemonjudge.scoring import ResultState
from lemonjudge.task import ComparisonMode, Task, TaskType

PathLike = Union[str, "os.PathLike[str]"]

_POLL_SECONDS = 0.01
_LEADING_INT = re.compile(r"[+-]?\d+")
_TRADITIONAL_TYPES = (
    TaskType.TRADITIONAL,
    TaskType.INTERACTION,
    TaskType.COMMUNICATION,
    TaskType.COMMUNICATION_EXEC,
)


@dataclass(frozen=True)
class _Usage:
    exit_code: int
    time_ms: int
    memory_bytes: int


_TIMED_OUT = object()


def _kill(proc: subprocess.Popen) -> None:
    try:
        proc.kill()
    except OSError:
        pass
    try:
        proc.wait()
    except (OSError, ChildProcessError):
        pass


def _reap(proc: subprocess.Popen, start: float) -> _Usage | None:
    """Collect a finished process with its resource usage, or None if it still runs."""
    if hasattr(os, "wait4"):
        pid, status, usage = os.wait4(proc.pid, os.WNOHANG)
        if pid == 0:
            return None
        proc.returncode = os.waitstatus_to_exitcode(status)
        cpu_ms = int((usage.ru_utime + usage.ru_stime) * 1000)
        scale = 1 if sys.platform == "darwin" else 1024
        return _Usage(proc.returncode, cpu_ms, usage.ru_maxrss * scale)
    code = proc.poll()
    if code is None:
        return None
    return _Usage(code, int((time.monotonic() - start) * 1000), -1)


@dataclass
class Judge:
    """Judges one single case of a task for one contestant.

    Limits are in milliseconds and megabytes; a memory limit of -1 disables
    the memory check. After run() the outcome is in score, result, message,
    time_used and memory_used.
    """

    task: Task
    input_file: PathLike = ""
    output_file: PathLike = ""
    working_directory: PathLike = "."
    executable_file: str = ""
    arguments: str = ""
    answer_file: PathLike = ""
    diff_path: str = "diff"
    data_path: PathLike = "."
    full_score: int = 0
    time_limit: int = 1000
    memory_limit: int = 256
    special_judge_time_limit: int = 1000
    extra_time_ratio: float = 0.1
    environment: Mapping[str, str] | None = None
    skip: bool = False
    score: int = 0
    result: ResultState | None = None
    message: str = ""
    time_used: int = -1
    memory_used: int = -1
    judged_times: int = 0
    need_rejudge: bool = False
    _stopped: threading.Event = field(default_factory=threading.Event, init=False, repr=False)

    def run(self) -> ResultState | None:
        """Judge the case once more and return the result."""
        self.judged_times += 1
        self.need_rejudge = False
        self.message = ""
        if self.task.task_type in _TRADITIONAL_TYPES:
            self._judge_traditional()
        elif self.task.task_type == TaskType.ANSWERS_ONLY:
            self.judge_output(self.answer_file)
        return self.result

    def stop(self) -> None:
        """Ask a running judgement to give up as soon as it can."""
        self._stopped.set()

    @property
    def _work(self) -> Path:
        return Path(self.working_directory)

    def _apply(self, verdict: Verdict) -> None:
        self.score = verdict.score
        self.result = verdict.result
        self.message = verdict.message

    def _fail(self, result: ResultState, message: str = "") -> None:
        self.score = 0
        self.result = result
        if message:
            self.message = message

    def judge_output(self, contestant_output: PathLike) -> None:
        """Check the contestant's output with the task's comparison mode."""
        mode = self.task.comparison_mode
        if mode == ComparisonMode.LINE_BY_LINE:
            self._apply(compare_line_by_line(contestant_output, self.output_file, self.full_score))
        elif mode == ComparisonMode.IGNORE_SPACES:
            self._apply(compare_ignore_spaces(contestant_output, self.output_file, self.full_score))
        elif mode == ComparisonMode.EXTERNAL_TOOL:
            self._apply(
                compare_with_diff(
                    self.diff_path,
                    self.task.diff_arguments,
                    self.output_file,
                    contestant_output,
                    self.full_score,
                )
            )
        elif mode == ComparisonMode.REAL_NUMBER:
            self._apply(
                compare_real_numbers(
                    contestant_output,
                    self.output_file,
                    self.full_score,
                    self.task.real_precision,
                )
            )
        elif mode == ComparisonMode.SPECIAL_JUDGE:
            self.special_judge(contestant_output)

    def special_judge(self, contestant_output: PathLike) -> None:
        """Run the task's special judge program and take the score it writes."""
        if not os.path.exists(self.input_file):
            self._fail(ResultState.FILE_ERROR, "Cannot find standard input file")
            return
        if not os.path.exists(contestant_output):
            self._fail(ResultState.FILE_ERROR, "Cannot find contestant's output file")
            return
        if not os.path.exists(self.output_file):
            self._fail(ResultState.FILE_ERROR, "Cannot find standard output file")
            return

        score_path = self._work / "_score"
        message_path = self._work / "_message"
        command = [
            os.fspath(Path(self.data_path) / self.task.special_judge),
            os.fspath(self.input_file),
            os.fspath(contestant_output),
            os.fspath(self.output_file),
            str(self.full_score),
            os.fspath(score_path),
            os.fspath(message_path),
        ]
        try:
            proc = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError:
            self._fail(ResultState.INVALID_SPECIAL_JUDGE)
            return

        start = time.monotonic()
        finished = False
        while (time.monotonic() - start) * 1000 < self.special_judge_time_limit:
            if proc.poll() is not None:
                finished = True
                break
            if self._stopped.is_set():
                _kill(proc)
                return
            time.sleep(_POLL_SECONDS)

        if not finished:
            _kill(proc)
            self._fail(ResultState.SPECIAL_JUDGE_TIME_LIMIT_EXCEEDED)
            return
        if proc.returncode != 0:
            self._fail(ResultState.SPECIAL_JUDGE_RUN_TIME_ERROR)
            return

        try:
            tokens = score_path.read_text(errors="replace").split()
        except OSError:
            self._fail(ResultState.INVALID_SPECIAL_JUDGE)
            return
        if tokens:
            match = _LEADING_INT.match(tokens[0])
            if match is None:
                self._fail(ResultState.INVALID_SPECIAL_JUDGE)
                return
            score = int(match.group())
        else:
            score = 0
        if score < 0:
            self._fail(ResultState.INVALID_SPECIAL_JUDGE)
            return

        self.score = score
        try:
            self.message = message_path.read_text(errors="replace")
        except OSError:
            pass

        if score == 0:
            self.result = ResultState.WRONG_ANSWER
        elif score < self.full_score:
            self.result = ResultState.PARTLY_CORRECT
        else:
            self.result = ResultState.CORRECT_ANSWER

        score_path.unlink(missing_ok=True)
        message_path.unlink(missing_ok=True)

    def _contestant_output_path(self) -> Path:
        if self.task.standard_output_check:
            return self._work / "_tmpout"
        return self._work / self.task.output_file_name

    def _cleanup(self) -> None:
        if not self.task.standard_input_check:
            (self._work / self.task.input_file_name).unlink(missing_ok=True)
        self._contestant_output_path().unlink(missing_ok=True)

    def _judge_traditional(self) -> None:
        if not os.path.exists(self.input_file):
            self._fail(ResultState.FILE_ERROR, "Cannot find standard input file")
            return
        if not self.task.standard_input_check:
            try:
                shutil.copyfile(self.input_file, self._work / self.task.input_file_name)
            except OSError:
                self._fail(ResultState.FILE_ERROR, "Cannot copy standard input file")
                return

        self._run_program()
        if self._stopped.is_set():
            return
        if self.result != ResultState.CORRECT_ANSWER:
            self._cleanup()
            return

        self.judge_output(self._contestant_output_path())
        if self._stopped.is_set():
            return

        if self.time_used > self.time_limit:
            ratio = self.extra_time_ratio
            if self.score > 0 and (
                self.time_used <= self.time_limit * (1 + ratio)
                or self.time_used <= self.time_limit + 1000 * ratio
            ):
                self.need_rejudge = True
            self.score = 0
            self.result = ResultState.TIME_LIMIT_EXCEEDED
            self.message = ""

        self._cleanup()

    def _run_program(self) -> None:
        self.result = ResultState.CORRECT_ANSWER
        extra_time = math.ceil(max(2000, self.time_limit * 2) * self.extra_time_ratio)

        if self.skip:
            self._fail(ResultState.TIME_LIMIT_EXCEEDED)
            return

        command = [self.executable_file, *shlex.split(self.arguments)]
        env = dict(self.environment) if self.environment is not None else None
        with ExitStack() as stack:
            try:
                stdin: IO[bytes] | int = subprocess.DEVNULL
                stdout: IO[bytes] | int = subprocess.DEVNULL
                if self.task.standard_input_check:
                    stdin = stack.enter_context(open(self.input_file, "rb"))
                if self.task.standard_output_check:
                    stdout = stack.enter_context(open(self._work / "_tmpout", "wb"))
                stderr = stack.enter_context(open(self._work / "_tmperr", "wb"))
                proc = subprocess.Popen(
                    command,
                    stdin=stdin,
                    stdout=stdout,
                    stderr=stderr,
                    cwd=self._work,
                    env=env,
                )
            except (OSError, ValueError):
                self._fail(ResultState.CANNOT_START_PROGRAM)
                return
            outcome = self._watch(proc, self.time_limit + extra_time)

        if outcome is None:
            if self.skip:
                self._fail(ResultState.TIME_LIMIT_EXCEEDED)
                self.time_used = self.memory_used = -1
            return
        if outcome is _TIMED_OUT:
            self._fail(ResultState.TIME_LIMIT_EXCEEDED)
            self.time_used = self.memory_used = -1
            return

        assert isinstance(outcome, _Usage)
        if outcome.exit_code != 0:
            self._fail(ResultState.RUN_TIME_ERROR)
            try:
                self.message = (self._work / "_tmperr").read_text(errors="replace")
            except OSError:
                pass
            self.time_used = self.memory_used = -1
            return

        self.time_used = outcome.time_ms
        self.memory_used = outcome.memory_bytes
        if (
            self.memory_limit != -1
            and self.memory_used > 0
            and self.memory_used > self.memory_limit * 1024 * 1024
        ):
            self._fail(ResultState.MEMORY_LIMIT_EXCEEDED)

    def _watch(self, proc: subprocess.Popen, limit_ms: int) -> _Usage | object | None:
        """Wait for the program; None if stopped, _TIMED_OUT if it ran too long."""
        start = time.monotonic()
        while (time.monotonic() - start) * 1000 <= limit_ms:
            usage = _reap(proc, start)
            if usage is not None:
                return usage
            if self._stopped.is_set() or self.skip:
                _kill(proc)
                return None
            time.sleep(_POLL_SECONDS)
        _kill(proc)
        return _TIMED_OUT