"""A test case: one subtask made of several input/output file pairs."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

DEPENDENCE_FLAG = "_lemon_SUbtaskDEPENDENCE_fLAg"


def _to_int(value: Any) -> int:
    """Convert like a lenient text-to-number parse: invalid values become 0."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _to_portable(path: str) -> str:
    return path.replace(os.sep, "/")


def _to_native(path: str) -> str:
    return path.replace("/", os.sep)


@dataclass
class TestCase:
    """A subtask with its limits, data files and the subtasks it depends on."""

    __test__ = False

    full_score: int = 0
    time_limit: int = 0
    memory_limit: int = 0
    input_files: list[str] = field(default_factory=list)
    output_files: list[str] = field(default_factory=list)
    dependence_subtask: list[int] = field(default_factory=list)
    index: int = 0

    def set_dependence_subtask(self, values: Iterable[Any]) -> None:
        """Replace the dependences with the given numbers (or numeric strings), sorted."""
        self.dependence_subtask = sorted(_to_int(v) for v in values)

    def check_dependence_subtask(self, values: Iterable[Any]) -> bool:
        """Whether every value names an earlier subtask, each at most once."""
        seen: set[int] = set()
        for value in values:
            number = _to_int(value)
            if number <= 0 or number >= self.index or number in seen:
                return False
            seen.add(number)
        return True

    def add_single_case(self, input_file: str, output_file: str) -> None:
        self.input_files.append(input_file)
        self.output_files.append(output_file)

    def delete_single_case(self, index: int) -> None:
        del self.input_files[index]
        del self.output_files[index]

    def set_input_file(self, index: int, file_name: str) -> None:
        """Rename one input file; an index out of range is ignored."""
        if 0 <= index < len(self.input_files):
            self.input_files[index] = file_name

    def set_output_file(self, index: int, file_name: str) -> None:
        """Rename one output file; an index out of range is ignored."""
        if 0 <= index < len(self.output_files):
            self.output_files[index] = file_name

    def swap_files(self, a: int, b: int) -> None:
        """Swap two file pairs; indexes out of range leave everything as is."""
        size = len(self.input_files)
        if not (0 <= a < size and 0 <= b < size):
            return
        self.input_files[a], self.input_files[b] = self.input_files[b], self.input_files[a]
        self.output_files[a], self.output_files[b] = self.output_files[b], self.output_files[a]

    def clear_dependence_subtask(self) -> None:
        self.dependence_subtask.clear()

    def copy(self) -> TestCase:
        return TestCase(
            full_score=self.full_score,
            time_limit=self.time_limit,
            memory_limit=self.memory_limit,
            input_files=list(self.input_files),
            output_files=list(self.output_files),
            dependence_subtask=list(self.dependence_subtask),
            index=self.index,
        )

    def to_json(self) -> dict[str, Any]:
        """Serialise; dependences travel as flagged entries of the input list."""
        inputs = [_to_portable(name) for name in self.input_files]
        inputs.extend(f"{dep}{DEPENDENCE_FLAG}" for dep in self.dependence_subtask)
        return {
            "fullScore": self.full_score,
            "timeLimit": self.time_limit,
            "memoryLimit": self.memory_limit,
            "inputFiles": inputs,
            "outputFiles": [_to_portable(name) for name in self.output_files],
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> TestCase:
        """Build a test case from what to_json produced; raise ValueError if malformed."""
        try:
            full_score = int(data["fullScore"])
            time_limit = int(data["timeLimit"])
            memory_limit = int(data["memoryLimit"])
            raw_inputs = list(data["inputFiles"])
            raw_outputs = list(data["outputFiles"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"malformed test case: {exc}") from exc

        inputs: list[str] = []
        dependences: list[int] = []
        for entry in raw_inputs:
            if not isinstance(entry, str):
                raise ValueError(f"input file entry is not a string: {entry!r}")
            if entry.endswith(DEPENDENCE_FLAG):
                digits = entry.split("_", 1)[0]
                try:
                    dependences.append(int(digits))
                except ValueError as exc:
                    raise ValueError(f"malformed dependence entry: {entry!r}") from exc
            else:
                inputs.append(_to_native(entry))

        outputs: list[str] = []
        for entry in raw_outputs:
            if not isinstance(entry, str):
                raise ValueError(f"output file entry is not a string: {entry!r}")
            outputs.append(_to_native(entry))

        return cls(
            full_score=full_score,
            time_limit=time_limit,
            memory_limit=memory_limit,
            input_files=inputs,
            output_files=outputs,
            dependence_subtask=dependences,
        )