"""A contest: its tasks, its contestants and the judging of them."""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from lemonjudge.assignment import Assignment, JudgeSettings
from lemonjudge.contestant import Contestant, TaskRecord
from lemonjudge.task import Task


@dataclass
class Contest:
    """Tasks and contestants of one contest, with judging of the contestants.

    Contestants are kept ordered by name. Callbacks, when given, report
    progress: on_alert(text), on_case_finished(...), on_dependence_finished(...)
    and on_compile_error(...) are handed to each task's judging;
    on_task_judging_started(title), on_task_judged(title, score, total),
    on_contestant_judging_started(name) and
    on_contestant_judged(name, score, total) report on the contest level.
    """

    settings: JudgeSettings = field(default_factory=JudgeSettings)
    title: str = ""
    tasks: list[Task] = field(default_factory=list)
    contestants: dict[str, Contestant] = field(default_factory=dict)
    on_alert: Callable[[str], None] | None = None
    on_case_finished: Callable[[int, int, int, int, int, int, int], None] | None = None
    on_dependence_finished: Callable[[int, int, int], None] | None = None
    on_compile_error: Callable[[int, int], None] | None = None
    on_task_judging_started: Callable[[str], None] | None = None
    on_task_judged: Callable[[str, list[list[int]], int], None] | None = None
    on_contestant_judging_started: Callable[[str], None] | None = None
    on_contestant_judged: Callable[[str, int, int], None] | None = None
    _stopped: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _current: Assignment | None = field(default=None, init=False, repr=False)

    def add_task(self, task: Task) -> None:
        """Append a task; every contestant gets an empty record for it."""
        self.tasks.append(task)
        for contestant in self.contestants.values():
            contestant.add_task()

    def delete_task(self, index: int) -> None:
        """Remove a task and the contestants' records of it; bad indexes are ignored."""
        if not 0 <= index < len(self.tasks):
            return
        del self.tasks[index]
        for contestant in self.contestants.values():
            contestant.delete_task(index)

    def swap_task(self, a: int, b: int) -> None:
        """Swap two tasks together with the contestants' records of them."""
        size = len(self.tasks)
        if 0 <= a < size and 0 <= b < size:
            self.tasks[a], self.tasks[b] = self.tasks[b], self.tasks[a]
        for contestant in self.contestants.values():
            contestant.swap_task(a, b)

    def get_task(self, index: int) -> Task | None:
        if 0 <= index < len(self.tasks):
            return self.tasks[index]
        return None

    def get_contestant(self, name: str) -> Contestant | None:
        return self.contestants.get(name)

    def _sort_contestants(self) -> None:
        self.contestants = dict(sorted(self.contestants.items()))

    def refresh_contestant_list(self) -> None:
        """Match the contestants with the folders found in the source path."""
        root = Path(self.settings.source_path)
        try:
            names = {
                entry.name
                for entry in os.scandir(root)
                if entry.is_dir() and not entry.name.startswith(".")
            }
        except OSError:
            names = set()

        for name in [n for n in self.contestants if n not in names]:
            del self.contestants[name]

        for name in sorted(names):
            if name in self.contestants:
                continue
            contestant = Contestant(name)
            for _ in self.tasks:
                contestant.add_task()
            self.contestants[name] = contestant
        self._sort_contestants()

    def delete_contestant(self, name: str) -> None:
        self.contestants.pop(name, None)

    def total_time_limit(self) -> int:
        return sum(task.total_time_limit() for task in self.tasks)

    def total_score(self) -> int:
        return sum(task.total_score() for task in self.tasks)

    def judge(self, name: str, indexes: int | Iterable[int] | None = None) -> bool:
        """Judge the given tasks (all when None) for one contestant.

        Returns False when the judging was stopped. Raises KeyError for an
        unknown contestant.
        """
        contestant = self.contestants.get(name)
        if contestant is None:
            raise KeyError(name)
        if indexes is None:
            order = list(range(len(self.tasks)))
        elif isinstance(indexes, int):
            order = [indexes]
        else:
            order = list(indexes)

        self._stopped.clear()
        if self.on_contestant_judging_started is not None:
            self.on_contestant_judging_started(name)

        for index in order:
            task = self.tasks[index]
            if self.on_task_judging_started is not None:
                self.on_task_judging_started(task.problem_title)
            assignment = Assignment(
                self.settings,
                task,
                name,
                on_alert=self.on_alert,
                on_case_finished=self.on_case_finished,
                on_dependence_finished=self.on_dependence_finished,
                on_compile_error=self.on_compile_error,
            )
            self._current = assignment
            if self._stopped.is_set():
                assignment.stop()
            try:
                assignment.run()
            finally:
                self._current = None
            if self._stopped.is_set():
                return False

            contestant.tasks[index] = TaskRecord(
                check_judged=True,
                compile_state=assignment.compile_state,
                source_file=assignment.source_file,
                compile_message=assignment.compile_message,
                input_files=[list(row) for row in assignment.input_files],
                result=[list(row) for row in assignment.result],
                message=[list(row) for row in assignment.message],
                score=[list(row) for row in assignment.score],
                time_used=[list(row) for row in assignment.time_used],
                memory_used=[list(row) for row in assignment.memory_used],
            )
            if self.on_task_judged is not None:
                self.on_task_judged(task.problem_title, assignment.score, task.total_score())

        contestant.judging_time = datetime.now()
        if self.on_contestant_judged is not None:
            self.on_contestant_judged(name, contestant.total_score(), self.total_score())
        return True

    def judge_all(self) -> bool:
        """Judge every contestant in name order; False if stopped on the way."""
        for name in list(self.contestants):
            if not self.judge(name):
                return False
        return True

    def stop(self) -> None:
        """Ask the judging in progress to stop."""
        self._stopped.set()
        current = self._current
        if current is not None:
            current.stop()

    def to_json(self) -> dict[str, Any]:
        return {
            "contestTitle": self.title,
            "tasks": [task.to_json() for task in self.tasks],
            "contestants": [c.to_json() for c in self.contestants.values()],
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any], settings: JudgeSettings | None = None) -> Contest:
        """Build a contest from what to_json produced; raise ValueError if malformed."""
        if not isinstance(data, Mapping):
            raise ValueError("contest data is not an object")
        title = data.get("contestTitle")
        tasks = data.get("tasks")
        contestants = data.get("contestants")
        if not isinstance(title, str):
            raise ValueError("'contestTitle' is missing or not a string")
        if not isinstance(tasks, list):
            raise ValueError("'tasks' is missing or not a list")
        if not isinstance(contestants, list):
            raise ValueError("'contestants' is missing or not a list")

        contest = cls(settings=settings if settings is not None else JudgeSettings(), title=title)
        for entry in tasks:
            if not isinstance(entry, dict):
                raise ValueError(f"task entry is not an object: {entry!r}")
            contest.tasks.append(Task.from_json(entry))
        for entry in contestants:
            if not isinstance(entry, dict):
                raise ValueError(f"contestant entry is not an object: {entry!r}")
            contestant = Contestant.from_json(entry)
            contest.contestants[contestant.name] = contestant
        contest._sort_contestants()
        return contest