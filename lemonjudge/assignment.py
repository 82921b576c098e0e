"""Judging every test case of one task for one contestant."""

from __future__ import annotations

import fnmatch
import locale
import math
import os
import shutil
import subprocess
import sys
import tempfile
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Union

from lemonjudge.judging import Judge
from lemonjudge.scoring import (
    MX_DEPEND_VALUE,
    CompileState,
    ResultState,
    state_to_status,
    status_to_score,
)
from lemonjudge.task import Task, TaskType

PathLike = Union[str, "os.PathLike[str]"]

COMM_EXEC_GRADER = "grader"
DISABLED_CONFIGURATION = "disable"
GRADER_NOT_FOUND = "Main grader (grader.*) cannot be found"

_POLL_SECONDS = 0.01
_COMMUNICATION_TYPES = (TaskType.COMMUNICATION, TaskType.COMMUNICATION_EXEC)
_TRADITIONAL_TYPES = (
    TaskType.TRADITIONAL,
    TaskType.INTERACTION,
    TaskType.COMMUNICATION,
    TaskType.COMMUNICATION_EXEC,
)

_NOT_STARTED = object()
_STOPPED = object()
_TIMED_OUT = object()


class CompilerType(IntEnum):
    """How a compiler turns a source file into something that can be run."""

    TYPICAL = 0
    INTERPRETIVE_WITH_BYTE_CODE = 1
    INTERPRETIVE_WITHOUT_BYTE_CODE = 2


@dataclass
class CompilerProfile:
    """A compiler or interpreter together with its named configurations.

    compiler_arguments and interpreter_arguments hold one line per entry of
    configuration_names; "%s.*" stands for the source files and "%s" for the
    task's source file name.
    """

    name: str
    compiler_type: CompilerType = CompilerType.TYPICAL
    compiler_location: str = ""
    interpreter_location: str = ""
    source_extensions: list[str] = field(default_factory=list)
    bytecode_extensions: list[str] = field(default_factory=list)
    configuration_names: list[str] = field(default_factory=lambda: ["default"])
    compiler_arguments: list[str] = field(default_factory=list)
    interpreter_arguments: list[str] = field(default_factory=list)
    time_limit_ratio: float = 1.0
    memory_limit_ratio: float = 1.0
    disable_memory_limit_check: bool = False
    environment: dict[str, str] = field(default_factory=dict)


@dataclass
class JudgeSettings:
    """Judging settings shared by every task: limits in ms, KB and counts."""

    compilers: list[CompilerProfile] = field(default_factory=list)
    source_path: PathLike = "source"
    data_path: PathLike = "data"
    file_size_limit: int = 50
    compile_time_limit: int = 10000
    special_judge_time_limit: int = 10000
    default_extra_time_ratio: float = 0.1
    rejudge_times: int = 0
    diff_path: str = "diff"


def _nth(values: Sequence[str], index: int) -> str:
    return values[index] if 0 <= index < len(values) else ""


def _copy(source: Path, destination: Path) -> None:
    """Copy a file, silently giving up if that is not possible."""
    try:
        shutil.copyfile(source, destination)
    except OSError:
        pass


def _files_in(directory: Path) -> list[str]:
    try:
        return sorted(entry.name for entry in os.scandir(directory) if entry.is_file())
    except OSError:
        return []


def _matching_files(directory: Path, patterns: Sequence[str]) -> list[str]:
    """File names in directory matching any wildcard pattern; no patterns match all."""
    names = _files_in(directory)
    if not patterns:
        return names
    lowered = [pattern.lower() for pattern in patterns]
    return [n for n in names if any(fnmatch.fnmatchcase(n.lower(), p) for p in lowered)]


def _merged_environment(extra: Mapping[str, str]) -> dict[str, str]:
    """The compiler's variables, each followed by the system value of the same name."""
    merged = dict(extra)
    for name, value in os.environ.items():
        if not name:
            continue
        if name in merged:
            merged[name] = f"{merged[name]};{value}"
        else:
            merged[name] = value
    return merged


def _stem_before_last_dot(name: str) -> str:
    index = name.rfind(".")
    return name[:index] if index >= 0 else ""


def _kill(proc: subprocess.Popen) -> None:
    try:
        proc.kill()
    except OSError:
        pass
    try:
        proc.communicate()
    except (OSError, ValueError):
        pass


@dataclass
class Assignment:
    """Compiles one contestant's solution of a task and judges every single case.

    Results are indexed by test case, then by single case. Callbacks, when
    given, are told of progress: on_alert(text), on_case_finished(time_limit,
    test_case, single_case, result, score, time_used, memory_used),
    on_dependence_finished(test_case, dependence, status) and
    on_compile_error(total_time_limit, compile_state).
    """

    settings: JudgeSettings
    task: Task
    contestant_name: str
    on_alert: Callable[[str], None] | None = None
    on_case_finished: Callable[[int, int, int, int, int, int, int], None] | None = None
    on_dependence_finished: Callable[[int, int, int], None] | None = None
    on_compile_error: Callable[[int, int], None] | None = None
    compile_state: CompileState = CompileState.NO_VALID_SOURCE_FILE
    compile_message: str = ""
    source_file: str = ""
    score: list[list[int]] = field(default_factory=list)
    time_used: list[list[int]] = field(default_factory=list)
    memory_used: list[list[int]] = field(default_factory=list)
    result: list[list[ResultState]] = field(default_factory=list)
    message: list[list[str]] = field(default_factory=list)
    input_files: list[list[str]] = field(default_factory=list)
    _stopped: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _current_judge: Judge | None = field(default=None, init=False, repr=False)
    _executable: str = field(default="", init=False, repr=False)
    _arguments: str = field(default="", init=False, repr=False)
    _interpreter: bool = field(default=False, init=False, repr=False)
    _time_ratio: float = field(default=1.0, init=False, repr=False)
    _memory_ratio: float = field(default=1.0, init=False, repr=False)
    _no_memory_check: bool = field(default=False, init=False, repr=False)
    _environment: dict[str, str] = field(default_factory=dict, init=False, repr=False)
    _overall_status: list[int] = field(default_factory=list, init=False, repr=False)
    _test_case_score: list[int] = field(default_factory=list, init=False, repr=False)

    def stop(self) -> None:
        """Ask the judging to stop as soon as it can."""
        self._stopped.set()
        judge = self._current_judge
        if judge is not None:
            judge.stop()

    def _alert(self, text: str) -> None:
        if self.on_alert is not None:
            self.on_alert(text)

    def _contestant_dir(self) -> Path:
        directory = Path(self.settings.source_path) / self.contestant_name
        if self.task.sub_folder_check:
            directory = directory / self.task.source_file_name
        return directory

    def prepare(self, work_dir: PathLike) -> bool:
        """Find, copy and compile the contestant's source into work_dir.

        Returns True when the solution is ready to run; otherwise compile_state
        tells why, and on_compile_error has been called (unless stopped).
        """
        work = Path(work_dir)
        task = self.task
        settings = self.settings
        self._alert("Preparing...")
        self.compile_state = CompileState.NO_VALID_SOURCE_FILE
        contestant_dir = self._contestant_dir()
        communication = task.task_type in _COMMUNICATION_TYPES

        for compiler in settings.compilers:
            current = task.compiler_configuration_for(compiler.name)
            if current == DISABLED_CONFIGURATION:
                continue
            if communication:
                patterns = list(task.source_files_path)
            else:
                patterns = [f"{task.source_file_name}.{ext}" for ext in compiler.source_extensions]

            self.source_file = ""
            for name in _matching_files(contestant_dir, patterns):
                if (contestant_dir / name).stat().st_size <= settings.file_size_limit * 1024:
                    if communication:
                        self.source_file += f" {name} "
                    else:
                        self.source_file = name
                        break
            if not self.source_file:
                continue

            build_dir = work / self.contestant_name
            build_dir.mkdir(parents=True, exist_ok=True)
            source_names: list[str] = []
            grader_paths: list[str] = []
            data_path = Path(settings.data_path)

            if communication:
                self.source_file = ""
                source_names = list(task.source_files_name)
                for path, name in zip(task.source_files_path, source_names):
                    _copy(contestant_dir / path, build_dir / name)
                    self.source_file += f" {name} "
            else:
                _copy(contestant_dir / self.source_file, build_dir / self.source_file)

            extra_files = ""
            if task.task_type == TaskType.INTERACTION:
                _copy(data_path / task.interactor, build_dir / task.interactor_name)
                _copy(data_path / task.grader, build_dir / "__grader.cpp")
            if communication:
                grader_paths = list(task.grader_files_path)
                for path, name in zip(grader_paths, task.grader_files_name):
                    _copy(data_path / path, build_dir / name)
                    extra_files += f" {name} "

            if current in compiler.configuration_names:
                index = compiler.configuration_names.index(current)
                if not self._compile(compiler, index, build_dir, source_names, grader_paths, extra_files):
                    return False
            break

        if self.compile_state != CompileState.COMPILE_SUCCESSFULLY:
            if self.on_compile_error is not None:
                self.on_compile_error(task.total_time_limit(), int(self.compile_state))
            return False
        return True

    def _compile(
        self,
        compiler: CompilerProfile,
        index: int,
        build_dir: Path,
        source_names: list[str],
        grader_paths: list[str],
        extra_files: str,
    ) -> bool:
        """Set up running and compile with one configuration; False if stopped."""
        task = self.task
        self._time_ratio = compiler.time_limit_ratio
        self._memory_ratio = compiler.memory_limit_ratio
        self._no_memory_check = compiler.disable_memory_limit_check
        self._environment = _merged_environment(compiler.environment)

        if compiler.compiler_type == CompilerType.TYPICAL:
            if task.task_type == TaskType.COMMUNICATION_EXEC:
                executable = COMM_EXEC_GRADER
            else:
                executable = task.source_file_name
            if sys.platform == "win32":
                executable += ".exe"
            self._executable = executable
            self._interpreter = False
        else:
            self._executable = compiler.interpreter_location
            self._arguments = (
                _nth(compiler.interpreter_arguments, index)
                .replace("%s.*", self.source_file + extra_files)
                .replace("%s", task.source_file_name)
            )
            self._interpreter = True

        if compiler.compiler_type == CompilerType.INTERPRETIVE_WITHOUT_BYTE_CODE:
            self.compile_state = CompileState.COMPILE_SUCCESSFULLY
            return True

        self._alert("Compiling...")
        template = _nth(compiler.compiler_arguments, index)
        if task.task_type == TaskType.INTERACTION:
            lines = [
                template.replace("%s.*", self.source_file + " __grader.cpp").replace(
                    "%s", task.source_file_name
                )
            ]
        elif task.task_type == TaskType.COMMUNICATION:
            lines = [
                template.replace("%s.*", self.source_file + extra_files).replace(
                    "%s", task.source_file_name
                )
            ]
        elif task.task_type == TaskType.COMMUNICATION_EXEC:
            lines = [
                template.replace("%s.*", name).replace("%s", _stem_before_last_dot(name))
                for name in source_names
            ] or [template]
            wanted = {f"{COMM_EXEC_GRADER}.{ext}" for ext in compiler.source_extensions}
            main_name = next(
                (p.split(os.sep)[-1] for p in grader_paths if p.split(os.sep)[-1] in wanted),
                None,
            )
            if main_name is None:
                self.compile_state = CompileState.NO_VALID_GRADER_FILE
                self.compile_message = GRADER_NOT_FOUND
                return True
            grader_line = template + " -lpthread"
            lines.append(grader_line)
            lines.append(grader_line.replace("%s.*", main_name).replace("%s", COMM_EXEC_GRADER))
        else:
            lines = [
                template.replace("%s.*", self.source_file).replace("%s", task.source_file_name)
            ]

        for line in lines:
            outcome = self._run_compiler(compiler.compiler_location, line, build_dir)
            if outcome is _NOT_STARTED:
                self.compile_state = CompileState.INVALID_COMPILER
                break
            if outcome is _STOPPED:
                return False
            if outcome is _TIMED_OUT:
                self.compile_state = CompileState.COMPILE_TIME_LIMIT_EXCEEDED
                continue
            code, output = outcome
            if code != 0:
                self.compile_state = CompileState.COMPILE_ERROR
                self.compile_message = output.decode(
                    locale.getpreferredencoding(False), errors="replace"
                )
            elif self._produced_runnable(compiler, build_dir):
                self.compile_state = CompileState.COMPILE_SUCCESSFULLY
            else:
                self.compile_state = CompileState.INVALID_COMPILER

        self._alert("Compiled Successfully")
        return True

    def _produced_runnable(self, compiler: CompilerProfile, build_dir: Path) -> bool:
        if compiler.compiler_type == CompilerType.TYPICAL:
            return (build_dir / self._executable).exists()
        patterns = [f"*.{ext}" for ext in compiler.bytecode_extensions]
        if not patterns:
            return bool(_files_in(build_dir))
        return bool(_matching_files(build_dir, patterns))

    def _run_compiler(self, location: str, line: str, cwd: Path) -> object:
        command = [location, *(part for part in line.split(" ") if part)]
        try:
            proc = subprocess.Popen(
                command,
                cwd=cwd,
                env=self._environment,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except (OSError, ValueError):
            return _NOT_STARTED
        start = time.monotonic()
        while (time.monotonic() - start) * 1000 < self.settings.compile_time_limit:
            try:
                output, _ = proc.communicate(timeout=_POLL_SECONDS)
            except subprocess.TimeoutExpired:
                if self._stopped.is_set():
                    _kill(proc)
                    return _STOPPED
                continue
            return proc.returncode, output or b""
        _kill(proc)
        return _TIMED_OUT

    def run(self) -> bool:
        """Prepare and judge every single case; False if it could not be completed."""
        with tempfile.TemporaryDirectory(prefix="lemonjudge-") as temporary:
            work = Path(temporary)
            if self.task.task_type != TaskType.ANSWERS_ONLY and not self.prepare(work):
                return False
            if self._stopped.is_set():
                return False
            self._reset_results()
            self._judge_all(work)
        return not self._stopped.is_set()

    def _reset_results(self) -> None:
        cases = self.task.test_cases
        self.time_used = [[-1] * len(tc.input_files) for tc in cases]
        self.memory_used = [[-1] * len(tc.input_files) for tc in cases]
        self.score = [[0] * len(tc.input_files) for tc in cases]
        self.result = [[ResultState.SKIPPED] * len(tc.input_files) for tc in cases]
        self.message = [[""] * len(tc.input_files) for tc in cases]
        self.input_files = [[""] * len(tc.input_files) for tc in cases]
        self._overall_status = [MX_DEPEND_VALUE] * len(cases)
        self._test_case_score = [tc.full_score for tc in cases]

    def _judge_all(self, work: Path) -> None:
        cases = self.task.test_cases
        case_index = 0
        single = 0
        while case_index < len(cases):
            current = cases[case_index]
            skipped = False
            if single == len(current.input_files):
                case_index += 1
                while case_index < len(cases) and not cases[case_index].input_files:
                    case_index += 1
                single = 0
                if case_index == len(cases):
                    return
                current = cases[case_index]
                self._overall_status[case_index] = MX_DEPEND_VALUE
                for dependence in current.dependence_subtask:
                    status = self._overall_status[dependence - 1]
                    if self.on_dependence_finished is not None:
                        self.on_dependence_finished(case_index, dependence, status)
                    if status < 0:
                        skipped = True
                    self._overall_status[case_index] = min(self._overall_status[case_index], status)
                if current.dependence_subtask:
                    self.score[case_index].append(self._overall_status[case_index])

            self.input_files[case_index][single] = Path(current.input_files[single]).name
            self._test_case_score[case_index] = min(
                self._test_case_score[case_index],
                status_to_score(self._overall_status[case_index], current.full_score),
            )

            if self._overall_status[case_index] < 0 or skipped:
                self._overall_status[case_index] = -1
                if self.on_case_finished is not None:
                    self.on_case_finished(
                        current.time_limit,
                        case_index,
                        single,
                        int(self.result[case_index][single]),
                        0,
                        0,
                        0,
                    )
                single += 1
                continue

            if not self._judge_case(work, case_index, single):
                return
            single += 1

    def _judge_case(self, work: Path, case_index: int, single: int) -> bool:
        """Judge one single case, rejudging as allowed; False if stopped."""
        task = self.task
        settings = self.settings
        current = task.test_cases[case_index]
        data_path = Path(settings.data_path)

        case_dir = work / f"_{case_index}.{single}"
        case_dir.mkdir(parents=True, exist_ok=True)
        build_dir = work / self.contestant_name
        for name in _files_in(build_dir):
            _copy(build_dir / name, case_dir / name)

        judge = Judge(
            task=task,
            input_file=data_path / current.input_files[single],
            output_file=data_path / current.output_files[single],
            working_directory=case_dir,
            diff_path=settings.diff_path,
            data_path=data_path,
            full_score=current.full_score,
            special_judge_time_limit=settings.special_judge_time_limit,
            extra_time_ratio=settings.default_extra_time_ratio,
        )

        if task.task_type in _TRADITIONAL_TYPES:
            if self._interpreter:
                judge.executable_file = self._executable
            else:
                judge.executable_file = os.fspath(case_dir / self._executable)
            judge.arguments = self._arguments

        if task.task_type == TaskType.ANSWERS_ONLY:
            base = Path(current.input_files[single]).name
            dot = base.rfind(".")
            stem = base[:dot] if dot >= 0 else base
            judge.answer_file = self._contestant_dir() / f"{stem}.{task.answer_file_extension}"
        else:
            judge.environment = self._environment
            judge.time_limit = math.ceil(current.time_limit * self._time_ratio)
            if self._no_memory_check:
                judge.memory_limit = -1
            else:
                judge.memory_limit = math.ceil(current.memory_limit * self._memory_ratio)

        self._current_judge = judge
        try:
            while True:
                if self._stopped.is_set():
                    return False
                judge.run()
                if self._stopped.is_set():
                    return False
                if judge.need_rejudge and judge.judged_times != settings.rejudge_times + 1:
                    continue
                break
        finally:
            self._current_judge = None

        result = judge.result if judge.result is not None else ResultState.SKIPPED
        self.time_used[case_index][single] = judge.time_used
        self.memory_used[case_index][single] = judge.memory_used
        self.score[case_index][single] = judge.score
        self.result[case_index][single] = result
        self._overall_status[case_index] = min(
            self._overall_status[case_index],
            state_to_status(result, judge.score, judge.full_score),
        )
        self.message[case_index][single] = judge.message

        last = single + 1 == len(current.input_files)
        now_score = self.score[case_index][single]
        if last:
            now_score = min([now_score, *self.score[case_index][:single]])
            if current.dependence_subtask:
                now_score = min(
                    now_score,
                    status_to_score(self._overall_status[case_index], current.full_score),
                )

        if self.on_case_finished is not None:
            self.on_case_finished(
                current.time_limit,
                case_index,
                single,
                int(result),
                (1 if last else -1) * now_score,
                self.time_used[case_index][single],
                self.memory_used[case_index][single],
            )

        if self.score[case_index][single] < self._test_case_score[case_index]:
            self._test_case_score[case_index] = self.score[case_index][single]
        return True