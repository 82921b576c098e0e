"""A contestant and the judging results kept for each task."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

from lemonjudge.scoring import CompileState, ResultState

_JULIAN_DAY_OFFSET = 1_721_425
_SPEC_LOCAL = 0
_SPEC_UTC = 1


@dataclass
class TaskRecord:
    """Judging results of one contestant on one task, indexed by subtask then case."""

    check_judged: bool = False
    compile_state: CompileState = CompileState.NO_VALID_SOURCE_FILE
    source_file: str = ""
    compile_message: str = ""
    input_files: list[list[str]] = field(default_factory=list)
    result: list[list[ResultState]] = field(default_factory=list)
    message: list[list[str]] = field(default_factory=list)
    score: list[list[int]] = field(default_factory=list)
    time_used: list[list[int]] = field(default_factory=list)
    memory_used: list[list[int]] = field(default_factory=list)


def _encode_time(moment: datetime | None) -> tuple[int, int, int]:
    if moment is None:
        return 0, 0, _SPEC_LOCAL
    spec = _SPEC_LOCAL
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
        spec = _SPEC_UTC
    day = moment.date().toordinal() + _JULIAN_DAY_OFFSET
    msecs = (moment.hour * 3600 + moment.minute * 60 + moment.second) * 1000
    msecs += moment.microsecond // 1000
    return day, msecs, spec


def _decode_time(day: int, msecs: int, spec: int) -> datetime | None:
    if day <= _JULIAN_DAY_OFFSET:
        return None
    tzinfo = timezone.utc if spec == _SPEC_UTC else None
    start = datetime.combine(date.fromordinal(day - _JULIAN_DAY_OFFSET), datetime.min.time(), tzinfo)
    return start + timedelta(milliseconds=msecs)


@dataclass
class Contestant:
    """A contestant with one TaskRecord per task of the contest."""

    name: str = ""
    tasks: list[TaskRecord] = field(default_factory=list)
    judging_time: datetime | None = None

    def add_task(self) -> None:
        self.tasks.append(TaskRecord())

    def delete_task(self, index: int) -> None:
        del self.tasks[index]

    def swap_task(self, a: int, b: int) -> None:
        """Swap two task records; indexes out of range leave everything as is."""
        size = len(self.tasks)
        if not (0 <= a < size and 0 <= b < size):
            return
        self.tasks[a], self.tasks[b] = self.tasks[b], self.tasks[a]

    def task_score(self, index: int) -> int:
        """Score on one task, or -1 if the task is unknown or not judged.

        Each subtask counts its lowest non-negative score, or 0 if it has none.
        """
        if not 0 <= index < len(self.tasks):
            return -1
        record = self.tasks[index]
        if not record.check_judged:
            return -1
        return sum(min((s for s in subtask if s >= 0), default=0) for subtask in record.score)

    def _fully_judged(self) -> bool:
        return bool(self.tasks) and all(record.check_judged for record in self.tasks)

    def total_score(self) -> int:
        """Sum of task scores, or -1 unless every task has been judged."""
        if not self._fully_judged():
            return -1
        return sum(self.task_score(i) for i in range(len(self.tasks)))

    def total_used_time(self) -> int:
        """Sum of all valid run times, or -1 unless every task has been judged."""
        if not self._fully_judged():
            return -1
        return sum(
            t
            for record in self.tasks
            for subtask in record.time_used
            for t in subtask
            if t >= 0
        )

    def to_json(self) -> dict[str, Any]:
        day, msecs, spec = _encode_time(self.judging_time)
        return {
            "contestantName": self.name,
            "checkJudged": [r.check_judged for r in self.tasks],
            "sourceFile": [r.source_file for r in self.tasks],
            "compileMesaage": [r.compile_message for r in self.tasks],
            "inputFiles": [[list(s) for s in r.input_files] for r in self.tasks],
            "message": [[list(s) for s in r.message] for r in self.tasks],
            "score": [[list(s) for s in r.score] for r in self.tasks],
            "timeUsed": [[list(s) for s in r.time_used] for r in self.tasks],
            "memoryUsed": [[list(s) for s in r.memory_used] for r in self.tasks],
            "judgingTime_date": day,
            "judgingTime_time": msecs,
            "judgingTime_timespec": spec,
            "compileState": [int(r.compile_state) for r in self.tasks],
            "result": [[[int(x) for x in s] for s in r.result] for r in self.tasks],
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Contestant:
        """Build a contestant from what to_json produced; raise ValueError if malformed."""
        keys = (
            "checkJudged",
            "sourceFile",
            "compileMesaage",
            "inputFiles",
            "message",
            "score",
            "timeUsed",
            "memoryUsed",
            "compileState",
            "result",
        )
        try:
            name = str(data["contestantName"])
            columns = {key: list(data[key]) for key in keys}
            judging_time = _decode_time(
                int(data["judgingTime_date"]),
                int(data["judgingTime_time"]),
                int(data["judgingTime_timespec"]),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise ValueError(f"malformed contestant: {exc}") from exc

        count = len(columns["checkJudged"])
        if any(len(column) != count for column in columns.values()):
            raise ValueError("per-task lists of a contestant differ in length")

        try:
            tasks = [
                TaskRecord(
                    check_judged=bool(columns["checkJudged"][i]),
                    compile_state=CompileState(int(columns["compileState"][i])),
                    source_file=str(columns["sourceFile"][i]),
                    compile_message=str(columns["compileMesaage"][i]),
                    input_files=[[str(x) for x in s] for s in columns["inputFiles"][i]],
                    result=[[ResultState(int(x)) for x in s] for s in columns["result"][i]],
                    message=[[str(x) for x in s] for s in columns["message"][i]],
                    score=[[int(x) for x in s] for s in columns["score"][i]],
                    time_used=[[int(x) for x in s] for s in columns["timeUsed"][i]],
                    memory_used=[[int(x) for x in s] for s in columns["memoryUsed"][i]],
                )
                for i in range(count)
            ]
        except (TypeError, ValueError) as exc:
            raise ValueError(f"malformed contestant task data: {exc}") from exc

        return cls(name=name, tasks=tasks, judging_time=judging_time)