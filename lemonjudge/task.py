"""A task of a contest: its kind, files, comparison settings and test cases."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from lemonjudge.testcase import TestCase

DEFAULT_DIFF_ARGUMENTS = "--ignore-space-change --text --brief"
DEFAULT_CONFIGURATION = "default"


class TaskType(IntEnum):
    """How a contestant's submission for a task is run."""

    TRADITIONAL = 0
    ANSWERS_ONLY = 1
    INTERACTION = 2
    COMMUNICATION = 3
    COMMUNICATION_EXEC = 4


class ComparisonMode(IntEnum):
    """How a contestant's output is checked against the standard output."""

    LINE_BY_LINE = 0
    IGNORE_SPACES = 1
    EXTERNAL_TOOL = 2
    REAL_NUMBER = 3
    SPECIAL_JUDGE = 4


_COMMUNICATION_TYPES = (TaskType.COMMUNICATION, TaskType.COMMUNICATION_EXEC)


def _to_portable(path: str) -> str:
    return path.replace(os.sep, "/")


def _to_native(path: str) -> str:
    return path.replace("/", os.sep)


def _read(data: Mapping[str, Any], key: str, kind: type) -> Any:
    """Fetch a value of the expected JSON kind, raising ValueError otherwise."""
    try:
        value = data[key]
    except KeyError as exc:
        raise ValueError(f"missing key {key!r}") from exc
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{key!r} is not a number: {value!r}")
        return int(value)
    if kind is bool:
        if not isinstance(value, bool):
            raise ValueError(f"{key!r} is not a boolean: {value!r}")
        return value
    if kind is str:
        if not isinstance(value, str):
            raise ValueError(f"{key!r} is not a string: {value!r}")
        return value
    if kind is list:
        if not isinstance(value, list):
            raise ValueError(f"{key!r} is not a list: {value!r}")
        return value
    if kind is dict:
        if not isinstance(value, dict):
            raise ValueError(f"{key!r} is not an object: {value!r}")
        return value
    raise TypeError(f"unsupported kind {kind!r}")


def _read_strings(data: Mapping[str, Any], key: str) -> list[str]:
    values = _read(data, key, list)
    if not all(isinstance(v, str) for v in values):
        raise ValueError(f"{key!r} holds a value that is not a string")
    return [_to_native(v) for v in values]


@dataclass
class Task:
    """A problem of the contest together with its test cases."""

    problem_title: str = ""
    source_file_name: str = ""
    input_file_name: str = ""
    output_file_name: str = ""
    task_type: TaskType = TaskType.TRADITIONAL
    comparison_mode: ComparisonMode = ComparisonMode.IGNORE_SPACES
    diff_arguments: str = DEFAULT_DIFF_ARGUMENTS
    real_precision: int = 3
    standard_input_check: bool = False
    standard_output_check: bool = False
    sub_folder_check: bool = False
    special_judge: str = ""
    interactor: str = ""
    interactor_name: str = ""
    grader: str = ""
    source_files_path: list[str] = field(default_factory=list)
    source_files_name: list[str] = field(default_factory=list)
    grader_files_path: list[str] = field(default_factory=list)
    grader_files_name: list[str] = field(default_factory=list)
    compiler_configuration: dict[str, str] = field(default_factory=dict)
    answer_file_extension: str = ""
    test_cases: list[TestCase] = field(default_factory=list)

    def add_test_case(self, test_case: TestCase, loc: int | None = None) -> None:
        """Append a test case (numbering it), or insert it at position loc."""
        if loc is None:
            test_case.index = len(self.test_cases) + 1
            self.test_cases.append(test_case)
        else:
            self.test_cases.insert(loc, test_case)

    def get_test_case(self, index: int) -> TestCase | None:
        """The test case at index, or None if there is none."""
        if 0 <= index < len(self.test_cases):
            return self.test_cases[index]
        return None

    def delete_test_case(self, index: int) -> None:
        """Remove a test case; the dependences of it and every later case are cleared."""
        if not 0 <= index < len(self.test_cases):
            return
        for test_case in self.test_cases[index:]:
            test_case.clear_dependence_subtask()
        del self.test_cases[index]

    def swap_test_case(self, a: int, b: int) -> None:
        """Swap two test cases; indexes out of range leave everything as is."""
        size = len(self.test_cases)
        if not (0 <= a < size and 0 <= b < size):
            return
        self.test_cases[a], self.test_cases[b] = self.test_cases[b], self.test_cases[a]

    def append_source_files(self, path: str, name: str) -> None:
        self.source_files_path.append(path)
        self.source_files_name.append(name)

    def append_grader_files(self, path: str, name: str) -> None:
        self.grader_files_path.append(path)
        self.grader_files_name.append(name)

    def remove_source_files_at(self, index: int) -> None:
        """Drop one source file entry; an index out of range is ignored."""
        if 0 <= index < len(self.source_files_path):
            del self.source_files_path[index]
            del self.source_files_name[index]

    def remove_grader_files_at(self, index: int) -> None:
        """Drop one grader file entry; an index out of range is ignored."""
        if 0 <= index < len(self.grader_files_path):
            del self.grader_files_path[index]
            del self.grader_files_name[index]

    def compiler_configuration_for(self, compiler_name: str) -> str:
        """Configuration chosen for a compiler, or an empty string if none is set."""
        return self.compiler_configuration.get(compiler_name, "")

    def set_compiler_configuration(self, compiler_name: str, configuration: str) -> None:
        self.compiler_configuration[compiler_name] = configuration

    def refresh_compiler_configuration(
        self,
        compilers: Mapping[str, Iterable[str]] | Iterable[tuple[str, Iterable[str]]],
    ) -> None:
        """Align the configurations with the available compilers.

        compilers maps each compiler name to its configuration names. Entries
        for unknown compilers are dropped; missing or no longer valid
        configurations fall back to "default".
        """
        available = {name: list(configs) for name, configs in dict(compilers).items()}
        self.compiler_configuration = {
            name: config
            for name, config in self.compiler_configuration.items()
            if name in available
        }
        for name, configs in available.items():
            current = self.compiler_configuration.get(name)
            if current is None or current not in configs:
                self.compiler_configuration[name] = DEFAULT_CONFIGURATION

    def total_time_limit(self) -> int:
        """Sum of the time limit over every single case of the task."""
        return sum(tc.time_limit * len(tc.input_files) for tc in self.test_cases)

    def total_score(self) -> int:
        return sum(tc.full_score for tc in self.test_cases)

    def copy(self) -> Task:
        """An independent copy, carrying what serialisation keeps."""
        return Task.from_json(self.to_json())

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "problemTitle": self.problem_title,
            "sourceFileName": self.source_file_name,
            "inputFileName": self.input_file_name,
            "outputFileName": self.output_file_name,
            "standardInputCheck": self.standard_input_check,
            "standardOutputCheck": self.standard_output_check,
            "taskType": int(self.task_type),
            "subFolderCheck": self.sub_folder_check,
            "comparisonMode": int(self.comparison_mode),
            "diffArguments": self.diff_arguments,
            "realPrecision": self.real_precision,
            "specialJudge": _to_portable(self.special_judge),
        }
        if self.task_type == TaskType.INTERACTION:
            out["interactor"] = _to_portable(self.interactor)
            out["grader"] = _to_portable(self.grader)
            out["interactorName"] = self.interactor_name
        if self.task_type in _COMMUNICATION_TYPES:
            out["sourceFilesPath"] = [_to_portable(p) for p in self.source_files_path]
            out["sourceFilesName"] = [_to_portable(p) for p in self.source_files_name]
            out["graderFilesPath"] = [_to_portable(p) for p in self.grader_files_path]
            out["graderFilesName"] = [_to_portable(p) for p in self.grader_files_name]
        out["compilerConfiguration"] = dict(sorted(self.compiler_configuration.items()))
        out["answerFileExtension"] = self.answer_file_extension
        out["testCases"] = [tc.to_json() for tc in self.test_cases]
        return out

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> Task:
        """Build a task from what to_json produced; raise ValueError if malformed."""
        try:
            task_type = TaskType(_read(data, "taskType", int))
            comparison_mode = ComparisonMode(_read(data, "comparisonMode", int))
        except ValueError as exc:
            raise ValueError(f"malformed task: {exc}") from exc

        task = cls(
            problem_title=_read(data, "problemTitle", str),
            source_file_name=_read(data, "sourceFileName", str),
            input_file_name=_read(data, "inputFileName", str),
            output_file_name=_read(data, "outputFileName", str),
            standard_input_check=_read(data, "standardInputCheck", bool),
            standard_output_check=_read(data, "standardOutputCheck", bool),
            task_type=task_type,
            sub_folder_check=_read(data, "subFolderCheck", bool),
            comparison_mode=comparison_mode,
            diff_arguments=_read(data, "diffArguments", str),
            real_precision=_read(data, "realPrecision", int),
            special_judge=_to_native(_read(data, "specialJudge", str)),
        )

        if task_type == TaskType.INTERACTION:
            task.interactor = _to_native(_read(data, "interactor", str))
            task.grader = _to_native(_read(data, "grader", str))
            task.interactor_name = _read(data, "interactorName", str)

        if task_type in _COMMUNICATION_TYPES:
            task.source_files_path = _read_strings(data, "sourceFilesPath")
            task.source_files_name = _read_strings(data, "sourceFilesName")
            task.grader_files_path = _read_strings(data, "graderFilesPath")
            task.grader_files_name = _read_strings(data, "graderFilesName")

        for name, config in _read(data, "compilerConfiguration", dict).items():
            if not isinstance(config, str):
                raise ValueError(f"configuration of compiler {name!r} is not a string")
            task.compiler_configuration[name] = config

        task.answer_file_extension = _read(data, "answerFileExtension", str)

        for entry in _read(data, "testCases", list):
            if not isinstance(entry, dict):
                raise ValueError(f"test case entry is not an object: {entry!r}")
            test_case = TestCase.from_json(entry)
            test_case.index = len(task.test_cases) + 1
            task.test_cases.append(test_case)

        return task