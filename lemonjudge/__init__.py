"""Judging core for programming contests: tasks, test cases, output comparison, judging and UOJ export."""

__version__ = "0.1.0"