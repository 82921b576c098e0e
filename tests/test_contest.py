import pytest

from lemonjudge.assignment import JudgeSettings
from lemonjudge.contest import Contest
from lemonjudge.task import Task, TaskType
from lemonjudge.testcase import TestCase


def make_case(score, time_limit, memory_limit, files):
    tc = TestCase()
    tc.full_score = score
    tc.time_limit = time_limit
    tc.memory_limit = memory_limit
    for input_file, output_file in files:
        tc.add_single_case(input_file, output_file)
    return tc


def answers_task(title, score):
    task = Task(
        problem_title=title,
        source_file_name=title,
        task_type=TaskType.ANSWERS_ONLY,
        answer_file_extension="out",
    )
    task.add_test_case(make_case(score, 1000, 256, [(f"{title}1.in", f"{title}1.ans")]))
    return task


@pytest.fixture
def layout(tmp_path):
    source = tmp_path / "source"
    data = tmp_path / "data"
    source.mkdir()
    data.mkdir()
    for title in ("a", "b"):
        (data / f"{title}1.in").write_text("1 2\n")
        (data / f"{title}1.ans").write_text("3\n")
    settings = JudgeSettings(source_path=source, data_path=data)
    return source, data, settings


def test_refresh_contestant_list_follows_folders(layout):
    source, _, settings = layout
    (source / "bob").mkdir()
    (source / "alice").mkdir()
    (source / "notes.txt").write_text("x")
    contest = Contest(settings=settings)
    contest.refresh_contestant_list()
    assert list(contest.contestants) == ["alice", "bob"]
    (source / "bob").rmdir()
    contest.refresh_contestant_list()
    assert list(contest.contestants) == ["alice"]


def test_get_task_and_contestant_out_of_range(layout):
    _, _, settings = layout
    contest = Contest(settings=settings)
    contest.add_task(answers_task("a", 10))
    assert contest.get_task(0).problem_title == "a"
    assert contest.get_task(1) is None
    assert contest.get_task(-1) is None
    assert contest.get_contestant("nobody") is None


def test_judge_correct_answer_scores_full(layout):
    source, _, settings = layout
    (source / "alice").mkdir()
    (source / "alice" / "a1.out").write_text("3\n")
    contest = Contest(settings=settings)
    contest.add_task(answers_task("a", 10))
    contest.refresh_contestant_list()
    assert contest.judge("alice") is True
    contestant = contest.get_contestant("alice")
    assert contestant.task_score(0) == 10
    assert contestant.total_score() == contest.total_score()


def test_judge_wrong_answer_scores_nothing(layout):
    source, _, settings = layout
    (source / "bob").mkdir()
    (source / "bob" / "a1.out").write_text("4\n")
    contest = Contest(settings=settings)
    contest.add_task(answers_task("a", 10))
    contest.refresh_contestant_list()
    contest.judge("bob", 0)
    assert contest.get_contestant("bob").task_score(0) == 0


def test_judge_unknown_contestant_raises(layout):
    _, _, settings = layout
    contest = Contest(settings=settings)
    with pytest.raises(KeyError):
        contest.judge("ghost")


def test_swap_task_moves_records(layout):
    source, _, settings = layout
    (source / "alice").mkdir()
    (source / "alice" / "a1.out").write_text("3\n")
    contest = Contest(settings=settings)
    contest.add_task(answers_task("a", 10))
    contest.add_task(answers_task("b", 20))
    contest.refresh_contestant_list()
    contest.judge("alice", [0])
    contest.swap_task(0, 1)
    assert [t.problem_title for t in contest.tasks] == ["b", "a"]
    contestant = contest.get_contestant("alice")
    assert contestant.task_score(1) == 10
    assert contestant.task_score(0) == -1


def test_judge_all_and_delete_task(layout):
    source, _, settings = layout
    for name in ("alice", "bob"):
        (source / name).mkdir()
        (source / name / "a1.out").write_text("3\n")
        (source / name / "b1.out").write_text("3\n")
    contest = Contest(settings=settings)
    contest.add_task(answers_task("a", 10))
    contest.add_task(answers_task("b", 20))
    contest.refresh_contestant_list()
    judged = []
    contest.on_contestant_judged = lambda name, score, total: judged.append((name, score, total))
    assert contest.judge_all() is True
    assert [j[0] for j in judged] == ["alice", "bob"]
    assert all(score == total == contest.total_score() for _, score, total in judged)
    contest.delete_task(0)
    assert len(contest.tasks) == 1
    assert contest.get_contestant("alice").task_score(0) == 20


def test_totals_sum_over_tasks(layout):
    _, _, settings = layout
    contest = Contest(settings=settings)
    first = answers_task("a", 10)
    second = answers_task("b", 20)
    contest.add_task(first)
    contest.add_task(second)
    assert contest.total_score() == first.total_score() + second.total_score()
    assert contest.total_time_limit() == first.total_time_limit() + second.total_time_limit()


def test_json_round_trip(layout):
    source, _, settings = layout
    (source / "alice").mkdir()
    contest = Contest(settings=settings, title="Spring Round")
    contest.add_task(answers_task("a", 10))
    contest.refresh_contestant_list()
    data = contest.to_json()
    restored = Contest.from_json(data, settings)
    assert restored.title == "Spring Round"
    assert list(restored.contestants) == ["alice"]
    assert restored.to_json() == data


def test_from_json_rejects_malformed():
    with pytest.raises(ValueError):
        Contest.from_json({"contestTitle": "x", "tasks": "nope", "contestants": []})
    with pytest.raises(ValueError):
        Contest.from_json({"tasks": [], "contestants": []})