# lemonjudge

A judging core for offline programming contests. A contest is a set of
tasks; each task holds test cases (subtasks), and each test case holds one
or more input/output file pairs. The package compiles each contestant's
solution, runs it on every case under time and memory limits, checks the
output and keeps the scores.

## Modules

- `lemonjudge.scoring` — `ResultState` (verdict of one run), `CompileState`
  (outcome of preparing a solution) and the dependence arithmetic:
  `state_to_status`, `status_to_score` and `status_ranking_text`
  ("Pure", "Lost" or a percentage with three decimals).
- `lemonjudge.testcase` — `TestCase`: full score, time limit (ms), memory
  limit (MB), input and output files and the earlier subtasks it depends
  on. `check_dependence_subtask()` tells whether a list of dependences names
  only earlier subtasks, each once. Serialises with `to_json()` /
  `TestCase.from_json()`; dependences are stored as flagged entries of the
  input file list.
- `lemonjudge.task` — `Task` with its `TaskType` (traditional, answers
  only, interaction, communication, communication with executable grader)
  and `ComparisonMode` (line by line, ignore spaces, external tool, real
  numbers, special judge). Manages its test cases (`add_test_case`,
  `delete_test_case`, `swap_test_case`), source and grader file lists and
  per-compiler configurations (`refresh_compiler_configuration` takes a
  mapping of compiler name to configuration names and falls back to
  `"default"`). `total_time_limit()`, `total_score()`, `copy()`,
  `to_json()` / `Task.from_json()`.
- `lemonjudge.comparison` — output checkers returning a `Verdict`
  (score, result, message): `compare_line_by_line`, `compare_ignore_spaces`,
  `compare_real_numbers` (tolerance 10^-precision, absolute or relative) and
  `compare_with_diff`, which runs an external tool and accepts on exit
  status 0.
- `lemonjudge.judging` — `Judge` judges one single case: `run()` starts the
  program in its working directory, watches time (and memory where the
  platform reports it), then checks the output with the task's comparison
  mode; `special_judge()` runs the task's checker program, which writes a
  score and a message file. A run slightly over the limit that still scored
  sets `need_rejudge`. `stop()` cancels a judgement in progress.
- `lemonjudge.assignment` — `Assignment` compiles one contestant's
  solution for one task and judges every single case, skipping subtasks
  whose dependences were lost and rejudging up to `rejudge_times`.
  Configured by `JudgeSettings` (source and data paths, size and time
  limits, diff tool) and a list of `CompilerProfile` (with `CompilerType`).
  Progress is reported through optional callbacks.
- `lemonjudge.contestant` — `Contestant` with one `TaskRecord` per task;
  `task_score()`, `total_score()` and `total_used_time()` return -1 until
  the needed tasks are judged. `to_json()` / `Contestant.from_json()`.
- `lemonjudge.contest` — `Contest` ties tasks and contestants together.
  `refresh_contestant_list()` takes one contestant per folder of the source
  path; `judge(name, indexes)` judges some or all tasks of a contestant
  (raising `KeyError` for an unknown name), `judge_all()` judges everyone
  in name order, `stop()` interrupts. `to_json()` / `Contest.from_json()`.
- `lemonjudge.uojexport` — `default_options(task)` derives a
  `UojExportOptions` from a task; `build_problem_config()` produces the
  text of `problem.conf`; `export_task()` copies the data files and writes
  `problem.conf` into `<export_root>/<problem title>`, raising
  `ExportError` when a step fails.

## Example

```python
from lemonjudge.task import Task
from lemonjudge.testcase import TestCase
from lemonjudge.uojexport import default_options, build_problem_config

task = Task()
task.problem_title = "sum"
task.input_file_name = "sum.in"
task.output_file_name = "sum.out"

case = TestCase()
case.full_score = 100
case.time_limit = 1000
case.memory_limit = 256
case.add_single_case("sum/1.in", "sum/1.out")
task.add_test_case(case)

print(build_problem_config(task, default_options(task)))
```

## What it does not do

- There is no command-line tool and no graphical interface; the package is
  used from Python.
- There is no contest file format on disk. `to_json()` returns plain
  dictionaries and `from_json()` reads them back; writing them to a file is
  left to the caller.
- Compilers are not detected; they are described with `CompilerProfile`.
- Memory use is measured only where the platform offers `os.wait4`;
  elsewhere the memory limit is not enforced.

## Running the tests

```
pip install -e .[test]
pytest
```