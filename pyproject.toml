[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lemonjudge"
version = "0.1.0"
description = "Judging core for programming contests: tasks, test cases with subtask dependences, output comparison, program judging and UOJ export"
requires-python = ">=3.10"
dependencies = []
keywords = ["judge", "contest", "olympiad", "grading", "testing", "uoj"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lemonjudge"]

[tool.pytest.ini_options]
addopts = "-ra"
