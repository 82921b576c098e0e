import os

import pytest

from lemonjudge.task import ComparisonMode, Task, TaskType
from lemonjudge.testcase import TestCase


def make_case(score=10, time_limit=1000, files=1, deps=()):
    case = TestCase(full_score=score, time_limit=time_limit, memory_limit=256)
    for i in range(files):
        case.add_single_case(f"data{os.sep}a{i}.in", f"data{os.sep}a{i}.out")
    case.set_dependence_subtask(deps)
    return case


def test_defaults_match_source():
    task = Task()
    assert task.task_type == TaskType.TRADITIONAL
    assert task.comparison_mode == ComparisonMode.IGNORE_SPACES
    assert task.diff_arguments == "--ignore-space-change --text --brief"
    assert task.real_precision == 3
    assert task.standard_input_check is False
    assert task.sub_folder_check is False


def test_append_numbers_test_cases():
    task = Task()
    first, second = make_case(), make_case()
    task.add_test_case(first)
    task.add_test_case(second)
    assert [first.index, second.index] == [1, 2]
    assert task.test_cases == [first, second]


def test_insert_at_location_keeps_index():
    task = Task()
    a, b = make_case(score=1), make_case(score=2)
    task.add_test_case(a)
    b.index = 7
    task.add_test_case(b, 0)
    assert task.test_cases[0] is b
    assert b.index == 7


def test_get_test_case_out_of_range():
    task = Task()
    case = make_case()
    task.add_test_case(case)
    assert task.get_test_case(0) is case
    assert task.get_test_case(1) is None
    assert task.get_test_case(-1) is None


def test_delete_clears_later_dependences():
    task = Task()
    first = make_case()
    second = make_case(deps=[1])
    third = make_case(deps=[1])
    for case in (first, second, third):
        task.add_test_case(case)
    third_deps_before = list(third.dependence_subtask)
    task.delete_test_case(1)
    assert task.test_cases == [first, third]
    assert third.dependence_subtask == []
    assert third_deps_before == [1]


def test_delete_out_of_range_is_ignored():
    task = Task()
    case = make_case(deps=[])
    task.add_test_case(case)
    task.delete_test_case(5)
    assert task.test_cases == [case]


def test_swap_and_swap_out_of_range():
    task = Task()
    a, b = make_case(), make_case()
    task.add_test_case(a)
    task.add_test_case(b)
    task.swap_test_case(0, 1)
    assert task.test_cases == [b, a]
    task.swap_test_case(0, 2)
    assert task.test_cases == [b, a]


def test_source_and_grader_file_lists():
    task = Task()
    task.append_source_files("x/a.cpp", "a.cpp")
    task.append_source_files("x/b.cpp", "b.cpp")
    task.append_grader_files("g/grader.cpp", "grader.cpp")
    task.remove_source_files_at(0)
    task.remove_source_files_at(9)
    task.remove_grader_files_at(3)
    assert task.source_files_path == ["x/b.cpp"]
    assert task.source_files_name == ["b.cpp"]
    assert task.grader_files_name == ["grader.cpp"]
    task.remove_grader_files_at(0)
    assert task.grader_files_path == []


def test_compiler_configuration_lookup():
    task = Task()
    assert task.compiler_configuration_for("g++") == ""
    task.set_compiler_configuration("g++", "O2")
    assert task.compiler_configuration_for("g++") == "O2"


def test_refresh_compiler_configuration():
    task = Task()
    task.set_compiler_configuration("gone", "x")
    task.set_compiler_configuration("g++", "O2")
    task.set_compiler_configuration("gcc", "stale")
    task.refresh_compiler_configuration(
        {"g++": ["default", "O2"], "gcc": ["default"], "fpc": ["default"]}
    )
    assert task.compiler_configuration == {"g++": "O2", "gcc": "default", "fpc": "default"}


def test_refresh_accepts_pairs():
    task = Task()
    task.refresh_compiler_configuration([("g++", ["default"])])
    assert task.compiler_configuration == {"g++": "default"}


def test_totals():
    task = Task()
    task.add_test_case(make_case(score=10, time_limit=1000, files=2))
    task.add_test_case(make_case(score=20, time_limit=500, files=1))
    assert task.total_score() == 30
    assert task.total_time_limit() == 2500
    assert Task().total_score() == 0


def test_json_round_trip_traditional():
    task = Task(problem_title="sum", source_file_name="sum", input_file_name="sum.in",
                output_file_name="sum.out", comparison_mode=ComparisonMode.REAL_NUMBER,
                real_precision=5, special_judge=f"spj{os.sep}check")
    task.set_compiler_configuration("g++", "default")
    task.add_test_case(make_case(files=2))
    task.add_test_case(make_case(deps=[1]))
    data = task.to_json()
    assert data["specialJudge"] == "spj/check"
    assert "interactor" not in data
    assert "sourceFilesPath" not in data
    restored = Task.from_json(data)
    assert restored == task
    assert [tc.index for tc in restored.test_cases] == [1, 2]
    assert restored.test_cases[1].dependence_subtask == [1]


def test_json_round_trip_interaction():
    task = Task(task_type=TaskType.INTERACTION, interactor="inter.h",
                interactor_name="inter.h", grader="grader.cpp")
    data = task.to_json()
    assert data["taskType"] == 2
    assert Task.from_json(data) == task


def test_json_round_trip_communication():
    task = Task(task_type=TaskType.COMMUNICATION_EXEC)
    task.append_source_files("a.cpp", "a.cpp")
    task.append_grader_files("grader.cpp", "grader.cpp")
    data = task.to_json()
    assert data["sourceFilesName"] == ["a.cpp"]
    assert Task.from_json(data) == task


def test_interaction_fields_dropped_for_other_types():
    task = Task(interactor="inter.h", grader="g.cpp")
    restored = Task.from_json(task.to_json())
    assert restored.interactor == ""
    assert restored.grader == ""


def test_from_json_rejects_non_string_configuration():
    data = Task().to_json()
    data["compilerConfiguration"] = {"g++": 3}
    with pytest.raises(ValueError):
        Task.from_json(data)


def test_from_json_rejects_missing_key():
    data = Task().to_json()
    del data["problemTitle"]
    with pytest.raises(ValueError):
        Task.from_json(data)


def test_from_json_rejects_bad_task_type():
    data = Task().to_json()
    data["taskType"] = 99
    with pytest.raises(ValueError):
        Task.from_json(data)


def test_copy_is_independent():
    task = Task(problem_title="p")
    task.add_test_case(make_case())
    clone = task.copy()
    assert clone == task
    clone.test_cases[0].full_score = 99
    clone.problem_title = "q"
    assert task.test_cases[0].full_score != 99
    assert task.problem_title == "p"