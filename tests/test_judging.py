import sys
import time
from pathlib import Path

from lemonjudge.judging import Judge
from lemonjudge.scoring import ResultState
from lemonjudge.task import ComparisonMode, Task, TaskType


def make_judge(tmp_path: Path, program: str, expected: str, stdin_text: str = "1 2\n", **kwargs) -> Judge:
    work = tmp_path / "work"
    work.mkdir(exist_ok=True)
    data = tmp_path / "data"
    data.mkdir(exist_ok=True)
    (data / "case.in").write_text(stdin_text)
    (data / "case.out").write_text(expected)
    (work / "prog.py").write_text(program)
    task = kwargs.pop(
        "task",
        Task(
            standard_input_check=True,
            standard_output_check=True,
            comparison_mode=ComparisonMode.LINE_BY_LINE,
        ),
    )
    options = dict(
        task=task,
        input_file=str(data / "case.in"),
        output_file=str(data / "case.out"),
        working_directory=str(work),
        executable_file=sys.executable,
        arguments="prog.py",
        full_score=10,
        time_limit=5000,
        memory_limit=-1,
        extra_time_ratio=0.0,
    )
    options.update(kwargs)
    return Judge(**options)


SUM_PROGRAM = "a, b = map(int, input().split())\nprint(a + b)\n"


def write_spj(path: Path, body: str) -> None:
    path.write_text(f"#!{sys.executable}\nimport sys\n{body}")
    path.chmod(0o755)


def test_correct_answer_scores_full(tmp_path):
    judge = make_judge(tmp_path, SUM_PROGRAM, "3\n")
    assert judge.run() == ResultState.CORRECT_ANSWER
    assert judge.score == 10
    assert judge.time_used >= 0
    assert not (tmp_path / "work" / "_tmpout").exists()


def test_wrong_answer(tmp_path):
    judge = make_judge(tmp_path, SUM_PROGRAM, "4\n")
    judge.run()
    assert judge.result == ResultState.WRONG_ANSWER
    assert judge.score == 0
    assert judge.message == 'On line 1, Read "3" but expect "4"'


def test_runtime_error_keeps_stderr(tmp_path):
    program = "import sys\nsys.stderr.write('boom')\nsys.exit(3)\n"
    judge = make_judge(tmp_path, program, "3\n")
    judge.run()
    assert judge.result == ResultState.RUN_TIME_ERROR
    assert "boom" in judge.message
    assert judge.time_used == -1
    assert judge.memory_used == -1


def test_wall_time_limit_kills_program(tmp_path):
    program = "import time\ntime.sleep(10)\n"
    judge = make_judge(tmp_path, program, "3\n", time_limit=100)
    start = time.monotonic()
    judge.run()
    assert time.monotonic() - start < 5
    assert judge.result == ResultState.TIME_LIMIT_EXCEEDED
    assert judge.time_used == -1


def test_cpu_time_over_limit_asks_for_rejudge(tmp_path):
    program = (
        "import time\nwhile time.process_time() < 0.3:\n    pass\n" + SUM_PROGRAM
    )
    judge = make_judge(tmp_path, program, "3\n", time_limit=100, extra_time_ratio=1.0)
    judge.run()
    assert judge.result == ResultState.TIME_LIMIT_EXCEEDED
    assert judge.score == 0
    assert judge.need_rejudge is True
    assert judge.message == ""


def test_missing_input_file(tmp_path):
    judge = make_judge(tmp_path, SUM_PROGRAM, "3\n")
    judge.input_file = str(tmp_path / "nowhere.in")
    judge.run()
    assert judge.result == ResultState.FILE_ERROR
    assert judge.message == "Cannot find standard input file"


def test_cannot_start_program(tmp_path):
    judge = make_judge(tmp_path, SUM_PROGRAM, "3\n", executable_file=str(tmp_path / "missing-binary"))
    judge.run()
    assert judge.result == ResultState.CANNOT_START_PROGRAM
    assert judge.score == 0


def test_skip_gives_time_limit_exceeded(tmp_path):
    judge = make_judge(tmp_path, SUM_PROGRAM, "3\n", skip=True)
    judge.run()
    assert judge.result == ResultState.TIME_LIMIT_EXCEEDED
    assert judge.score == 0


def test_memory_limit_exceeded(tmp_path):
    program = "data = bytearray(32 * 1024 * 1024)\n" + SUM_PROGRAM
    judge = make_judge(tmp_path, program, "3\n", memory_limit=1)
    judge.run()
    assert judge.result == ResultState.MEMORY_LIMIT_EXCEEDED
    assert judge.score == 0


def test_file_io_task_cleans_up(tmp_path):
    task = Task(
        input_file_name="sum.in",
        output_file_name="sum.out",
        comparison_mode=ComparisonMode.IGNORE_SPACES,
    )
    program = (
        "a, b = map(int, open('sum.in').read().split())\n"
        "open('sum.out', 'w').write(str(a + b) + '\\n')\n"
    )
    judge = make_judge(tmp_path, program, "3\n", task=task)
    judge.run()
    assert judge.result == ResultState.CORRECT_ANSWER
    assert judge.score == 10
    assert not (tmp_path / "work" / "sum.in").exists()
    assert not (tmp_path / "work" / "sum.out").exists()


def test_judged_times_counts_runs(tmp_path):
    judge = make_judge(tmp_path, SUM_PROGRAM, "3\n")
    judge.run()
    judge.run()
    assert judge.judged_times == 2
    assert judge.result == ResultState.CORRECT_ANSWER


def test_answers_only_task(tmp_path):
    task = Task(task_type=TaskType.ANSWERS_ONLY, comparison_mode=ComparisonMode.LINE_BY_LINE)
    answer = tmp_path / "answer.out"
    answer.write_text("3\n")
    judge = make_judge(tmp_path, SUM_PROGRAM, "3\n", task=task, answer_file=str(answer))
    judge.run()
    assert judge.result == ResultState.CORRECT_ANSWER
    assert judge.score == 10


def spj_judge(tmp_path: Path, body: str) -> Judge:
    task = Task(
        standard_input_check=True,
        standard_output_check=True,
        comparison_mode=ComparisonMode.SPECIAL_JUDGE,
        special_judge="spj.py",
    )
    judge = make_judge(tmp_path, SUM_PROGRAM, "3\n", task=task, data_path=str(tmp_path / "data"))
    write_spj(tmp_path / "data" / "spj.py", body)
    return judge


def test_special_judge_partial_score(tmp_path):
    body = (
        "open(sys.argv[5], 'w').write(str(int(sys.argv[4]) // 2))\n"
        "open(sys.argv[6], 'w').write('half')\n"
    )
    judge = spj_judge(tmp_path, body)
    judge.run()
    assert judge.result == ResultState.PARTLY_CORRECT
    assert judge.score == 5
    assert judge.message == "half"
    assert not (tmp_path / "work" / "_score").exists()


def test_special_judge_full_score(tmp_path):
    body = "open(sys.argv[5], 'w').write(sys.argv[4])\n"
    judge = spj_judge(tmp_path, body)
    judge.run()
    assert judge.result == ResultState.CORRECT_ANSWER
    assert judge.score == 10


def test_special_judge_runtime_error(tmp_path):
    judge = spj_judge(tmp_path, "sys.exit(1)\n")
    judge.run()
    assert judge.result == ResultState.SPECIAL_JUDGE_RUN_TIME_ERROR
    assert judge.score == 0


def test_special_judge_invalid_score(tmp_path):
    judge = spj_judge(tmp_path, "open(sys.argv[5], 'w').write('abc')\n")
    judge.run()
    assert judge.result == ResultState.INVALID_SPECIAL_JUDGE


def test_special_judge_negative_score(tmp_path):
    judge = spj_judge(tmp_path, "open(sys.argv[5], 'w').write('-4')\n")
    judge.run()
    assert judge.result == ResultState.INVALID_SPECIAL_JUDGE
    assert judge.score == 0


def test_special_judge_missing_contestant_output(tmp_path):
    judge = spj_judge(tmp_path, "")
    judge.special_judge(tmp_path / "work" / "absent.out")
    assert judge.result == ResultState.FILE_ERROR
    assert judge.message == "Cannot find contestant's output file"


def test_special_judge_time_limit(tmp_path):
    judge = spj_judge(tmp_path, "import time\ntime.sleep(10)\n")
    judge.special_judge_time_limit = 100
    contestant = tmp_path / "work" / "given.out"
    contestant.write_text("3\n")
    judge.special_judge(contestant)
    assert judge.result == ResultState.SPECIAL_JUDGE_TIME_LIMIT_EXCEEDED


def test_stop_abandons_special_judge(tmp_path):
    judge = spj_judge(tmp_path, "import time\ntime.sleep(10)\n")
    judge.special_judge_time_limit = 20000
    contestant = tmp_path / "work" / "given.out"
    contestant.write_text("3\n")
    judge.stop()
    start = time.monotonic()
    judge.special_judge(contestant)
    assert time.monotonic() - start < 5
    assert judge.result is None


def test_real_number_mode(tmp_path):
    task = Task(
        standard_input_check=True,
        standard_output_check=True,
        comparison_mode=ComparisonMode.REAL_NUMBER,
        real_precision=3,
    )
    program = "print(3.0001)\n"
    judge = make_judge(tmp_path, program, "3\n", task=task)
    judge.run()
    assert judge.result == ResultState.CORRECT_ANSWER
    assert judge.score == 10