"""Exporting a task's data in the layout of a UOJ problem."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from lemonjudge.task import ComparisonMode, Task

PathLike = Union[str, "os.PathLike[str]"]

DEFAULT_EXPORT_ROOT = "data_uoj_format"
OUTPUT_LIMIT = 64


class ExportError(Exception):
    """Raised when an export cannot be completed."""


@dataclass
class UojExportOptions:
    """What the exported problem is called and how it is judged.

    Limits are kept as text: seconds for time, megabytes for memory.
    """

    problem_title: str = ""
    input_prefix: str = ""
    input_suffix: str = ""
    output_prefix: str = ""
    output_suffix: str = ""
    time_limit: str = "0"
    memory_limit: str = "0"
    special_judge: bool = False
    checker: str = ""


def _split_file_name(name: str) -> tuple[str, str]:
    parts = name.split(".")
    if len(parts) == 2:
        return parts[0], parts[1]
    return "", ""


def default_options(task: Task) -> UojExportOptions:
    """Options derived from the task: names, the largest limits and the checker."""
    input_prefix, input_suffix = _split_file_name(task.input_file_name)
    output_prefix, output_suffix = _split_file_name(task.output_file_name)

    time_limit = max((tc.time_limit for tc in task.test_cases), default=0)
    time_limit = max(time_limit, 0)
    memory_limit = max((tc.memory_limit for tc in task.test_cases), default=0)
    memory_limit = max(memory_limit, 0)

    if time_limit % 1000 == 0:
        time_text = str(time_limit // 1000)
    else:
        time_text = f"{time_limit / 1000:.2f}"

    options = UojExportOptions(
        problem_title=task.problem_title,
        input_prefix=input_prefix,
        input_suffix=input_suffix,
        output_prefix=output_prefix,
        output_suffix=output_suffix,
        time_limit=time_text,
        memory_limit=str(memory_limit),
    )
    mode = task.comparison_mode
    if mode == ComparisonMode.LINE_BY_LINE:
        options.checker = "bcmp"
    elif mode == ComparisonMode.IGNORE_SPACES:
        options.checker = "wcmp"
    elif mode == ComparisonMode.REAL_NUMBER:
        options.checker = f"rcmp{task.real_precision}"
    else:
        options.special_judge = True
    return options


def _needs_subtasks(task: Task) -> bool:
    return any(len(tc.input_files) != 1 or tc.dependence_subtask for tc in task.test_cases)


def build_problem_config(task: Task, options: UojExportOptions) -> str:
    """The text of problem.conf for the task."""
    number_of_tests = sum(len(tc.input_files) for tc in task.test_cases)
    lines = ["use_builtin_judger on"]
    if not options.special_judge:
        lines.append(f"use_builtin_checker {options.checker}")
    lines += [
        f"n_tests {number_of_tests}",
        "n_ex_tests 0",
        "n_sample_tests 0",
        f"input_pre {options.input_prefix}",
        f"input_suf {options.input_suffix}",
        f"output_pre {options.output_prefix}",
        f"output_suf {options.output_suffix}",
        f"time_limit {options.time_limit}",
        f"memory_limit {options.memory_limit}",
        f"output_limit {OUTPUT_LIMIT}",
    ]

    if _needs_subtasks(task):
        lines.append(f"n_subtasks {len(task.test_cases)}")
        subtask_end = 0
        for subtask_id, tc in enumerate(task.test_cases, start=1):
            subtask_end += len(tc.input_files)
            lines.append(f"subtask_end_{subtask_id} {subtask_end}")
            lines.append(f"subtask_score_{subtask_id} {tc.full_score}")
            if tc.dependence_subtask:
                lines.append(f"subtask_dependence_{subtask_id} many")
                for dependence_id, dependence in enumerate(tc.dependence_subtask, start=1):
                    lines.append(f"subtask_dependence_{subtask_id}_{dependence_id} {dependence}")
    else:
        for case_id, tc in enumerate(task.test_cases, start=1):
            lines.append(f"point_score_{case_id} {tc.full_score}")

    return "".join(line + "\n" for line in lines)


def _copy(source: Path, destination: Path) -> None:
    if destination.exists():
        raise ExportError(f"Aborted: Cannot copy file `{source}' to `{destination}'.")
    try:
        shutil.copyfile(source, destination)
    except OSError as exc:
        raise ExportError(f"Aborted: Cannot copy file `{source}' to `{destination}'.") from exc


def export_task(
    task: Task,
    options: UojExportOptions,
    data_path: PathLike,
    export_root: PathLike = DEFAULT_EXPORT_ROOT,
) -> Path:
    """Write the task's data and problem.conf into export_root/<problem title>.

    An existing folder of that name is replaced. Returns the folder written;
    raises ExportError when a step fails.
    """
    folder = Path(export_root) / options.problem_title
    if folder.exists():
        try:
            shutil.rmtree(folder)
        except OSError as exc:
            raise ExportError(f"Aborted: Cannot remove path `{folder}'.") from exc
    try:
        folder.mkdir(parents=True)
    except OSError as exc:
        raise ExportError(f"Aborted: Cannot make path `{folder}'.") from exc

    data = Path(data_path)
    number = 0
    for tc in task.test_cases:
        for input_file, output_file in zip(tc.input_files, tc.output_files):
            number += 1
            _copy(data / input_file, folder / f"{options.input_prefix}{number}.{options.input_suffix}")
            _copy(data / output_file, folder / f"{options.output_prefix}{number}.{options.output_suffix}")

    if options.special_judge and options.checker:
        _copy(data / options.checker, folder / "chk.cpp")

    try:
        (folder / "problem.conf").write_text(build_problem_config(task, options))
    except OSError as exc:
        raise ExportError("Aborted: Cannot open problem.conf.") from exc
    return folder