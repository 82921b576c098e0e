"""Checking a contestant's output against the standard output."""

from __future__ import annotations

import math
import os
import re
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from lemonjudge.scoring import ResultState

PathLike = Union[str, "os.PathLike[str]"]

_CHUNK = 20
_LF = 0x0A
_CR = 0x0D
_SPACE = 0x20
_TAB = 0x09
_EOF = -1
_BLANKS = (_SPACE, _TAB)
_LINE_ENDS = (_LF, _CR, _EOF)

_CANNOT_OPEN_CONTESTANT = "Cannot open contestant's output file"
_CANNOT_OPEN_STANDARD = "Cannot open standard output file"


@dataclass(frozen=True)
class Verdict:
    """Outcome of one comparison: awarded score, result and an explanation."""

    score: int
    result: ResultState
    message: str = ""


def _correct(full_score: int) -> Verdict:
    return Verdict(full_score, ResultState.CORRECT_ANSWER)


def _wrong(message: str) -> Verdict:
    return Verdict(0, ResultState.WRONG_ANSWER, message)


def _less(row: int, output: str = "output") -> Verdict:
    return _wrong(f"On line {row}, Contestant's {output} has less contents")


def _too_much(row: int, output: str = "output") -> Verdict:
    return Verdict(
        0,
        ResultState.OUTPUT_LIMIT_EXCEEDED,
        f"On line {row}, Contestant's {output} has too much contents",
    )


def _mismatch(row: int, read: str, expect: str) -> Verdict:
    return _wrong(f'On line {row}, Read "{read}" but expect "{expect}"')


def _text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _load_pair(contestant_output: PathLike, standard_output: PathLike) -> tuple[bytes, bytes] | Verdict:
    """Read both files, or return the file-error verdict the first failure calls for."""
    try:
        contestant = Path(contestant_output).read_bytes()
    except OSError:
        return Verdict(0, ResultState.FILE_ERROR, _CANNOT_OPEN_CONTESTANT)
    try:
        standard = Path(standard_output).read_bytes()
    except OSError:
        return Verdict(0, ResultState.FILE_ERROR, _CANNOT_OPEN_STANDARD)
    return contestant, standard


class _ChunkReader:
    """Hands out a line in pieces of at most 20 bytes, folding CR, LF and CRLF."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0
        self._after_cr = False

    def chunk(self) -> tuple[bytes, bool, bool]:
        """Return (piece, end of file reached, a line break ended the piece)."""
        piece = bytearray()
        while len(piece) < _CHUNK:
            if self._pos >= len(self._data):
                return bytes(piece), True, False
            ch = self._data[self._pos]
            self._pos += 1
            if ch == _LF:
                if self._after_cr:
                    self._after_cr = False
                    continue
                return bytes(piece), False, True
            if ch == _CR:
                self._after_cr = True
                return bytes(piece), False, True
            self._after_cr = False
            piece.append(ch)
        return bytes(piece), False, False


def compare_line_by_line(contestant_output: PathLike, standard_output: PathLike, full_score: int) -> Verdict:
    """Require the outputs to match exactly, line by line, up to line-ending style."""
    loaded = _load_pair(contestant_output, standard_output)
    if isinstance(loaded, Verdict):
        return loaded
    contestant = _ChunkReader(loaded[0])
    standard = _ChunkReader(loaded[1])
    row = 1
    while True:
        piece1, eof1, _ = contestant.chunk()
        piece2, eof2, new_row = standard.chunk()
        if piece1 != piece2:
            return _mismatch(row, _text(piece1), _text(piece2))
        if eof1 and not eof2:
            return _less(row)
        if eof2 and not eof1:
            return _too_much(row)
        if eof1 and eof2:
            return _correct(full_score)
        if new_row:
            row += 1


class _CharReader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def getc(self) -> int:
        if self._pos >= len(self._data):
            return _EOF
        ch = self._data[self._pos]
        self._pos += 1
        return ch


def _next_line(reader: _CharReader, ch: int) -> int:
    """Step over one line break (CRLF counts as one) and the blanks after it."""
    ch = reader.getc()
    if ch == _LF and ch != _EOF and reader is not None:
        pass
    return ch


def _skip_break(reader: _CharReader, ch: int) -> int:
    if ch == _CR:
        ch = reader.getc()
        if ch == _LF:
            ch = reader.getc()
    else:
        ch = reader.getc()
    while ch in _BLANKS:
        ch = reader.getc()
    return ch


def _advance_separator(reader: _CharReader, ch: int) -> tuple[int, int, bool]:
    """Consume the separator at ch; return (next char, separator kind, line changed).

    The kind is 0 for none, 1 for blanks within a line and 2 for a line break.
    """
    if ch in _LINE_ENDS:
        return _skip_break(reader, ch), 2, True
    if ch in _BLANKS:
        while ch in _BLANKS:
            ch = reader.getc()
        if ch in _LINE_ENDS:
            return _skip_break(reader, ch), 2, True
        return ch, 1, False
    return ch, 0, False


def _read_token(reader: _CharReader, ch: int) -> tuple[bytes, int]:
    token = bytearray()
    while len(token) < _CHUNK and ch not in _BLANKS and ch not in _LINE_ENDS:
        token.append(ch)
        ch = reader.getc()
    return bytes(token), ch


def compare_ignore_spaces(contestant_output: PathLike, standard_output: PathLike, full_score: int) -> Verdict:
    """Compare token by token; runs of blanks are equal, but line breaks must agree."""
    loaded = _load_pair(contestant_output, standard_output)
    if isinstance(loaded, Verdict):
        return loaded
    contestant = _CharReader(loaded[0])
    standard = _CharReader(loaded[1])
    ch1 = ch2 = _SPACE
    row = 1
    while True:
        ch1, kind1, _ = _advance_separator(contestant, ch1)
        ch2, kind2, new_row = _advance_separator(standard, ch2)
        if kind1 != kind2:
            if ch1 == _EOF and ch2 != _EOF:
                return _less(row)
            if ch1 != _EOF and ch2 == _EOF:
                return _too_much(row)
            return Verdict(0, ResultState.PRESENTATION_ERROR, f"Presentation error on line {row}")
        if new_row:
            row += 1
        token1, ch1 = _read_token(contestant, ch1)
        token2, ch2 = _read_token(standard, ch2)
        if token1 != token2:
            if not token1:
                return _less(row)
            if not token2:
                return _too_much(row)
            return _mismatch(row, _text(token1), _text(token2))
        if ch1 == _EOF and ch2 == _EOF:
            return _correct(full_score)


_FLOAT = re.compile(
    r"""[+-]?(?:
        0[xX](?:[0-9a-fA-F]+(?:\.[0-9a-fA-F]*)?|\.[0-9a-fA-F]+)(?:[pP][+-]?\d+)?
      | (?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?
      | [iI][nN][fF](?:[iI][nN][iI][tT][yY])?
      | [nN][aA][nN](?:\([0-9A-Za-z_]*\))?
    )""",
    re.VERBOSE,
)
_WHITESPACE = " \t\n\v\f\r"
_SCAN_EOF = -1
_SCAN_FAILED = 0
_SCAN_OK = 1


class _NumberScanner:
    """Reads floating-point numbers the way a formatted scan would."""

    def __init__(self, data: bytes) -> None:
        self._text = data.decode("latin-1")
        self._pos = 0

    def scan(self) -> tuple[int, float]:
        text = self._text
        while self._pos < len(text) and text[self._pos] in _WHITESPACE:
            self._pos += 1
        if self._pos >= len(text):
            return _SCAN_EOF, math.nan
        match = _FLOAT.match(text, self._pos)
        if match is None:
            return _SCAN_FAILED, math.nan
        self._pos = match.end()
        token = match.group()
        lowered = token.lower()
        if "nan" in lowered:
            return _SCAN_OK, math.nan
        if "x" in lowered:
            return _SCAN_OK, float.fromhex(token)
        return _SCAN_OK, float(token)

    def next_char(self) -> str | None:
        if self._pos >= len(self._text):
            return None
        ch = self._text[self._pos]
        self._pos += 1
        return ch


def compare_real_numbers(
    contestant_output: PathLike,
    standard_output: PathLike,
    full_score: int,
    precision: int,
) -> Verdict:
    """Compare two streams of real numbers within an absolute or relative tolerance.

    The tolerance is 10 to the power of minus precision.
    """
    loaded = _load_pair(contestant_output, standard_output)
    if isinstance(loaded, Verdict):
        return loaded
    contestant = _NumberScanner(loaded[0])
    standard = _NumberScanner(loaded[1])
    eps = 0.1 ** max(precision, 0)
    row = 1
    while True:
        count1, a = contestant.scan()
        count2, b = standard.scan()
        following = standard.next_char()
        if count1 == _SCAN_FAILED:
            return _wrong(f"On line {row}, Invalid characters in contestant's output file")
        if count2 == _SCAN_FAILED:
            return Verdict(
                0,
                ResultState.FILE_ERROR,
                f"On line {row}, Invalid characters in standard output file",
            )
        if count1 == _SCAN_EOF and count2 == _SCAN_EOF:
            return _correct(full_score)
        if count1 == _SCAN_EOF:
            return _less(row, "Output")
        if count2 == _SCAN_EOF:
            return _too_much(row, "Output")
        difference = abs(a - b)
        if (
            math.isnan(a) != math.isnan(b)
            or math.isinf(a) != math.isinf(b)
            or (difference > eps and difference > eps * abs(b))
        ):
            return _mismatch(row, f"{a:.18g}", f"{b:.18g}")
        if following in ("\r", "\n"):
            row += 1


def compare_with_diff(
    diff_path: PathLike,
    diff_arguments: str | Sequence[str],
    standard_output: PathLike,
    contestant_output: PathLike,
    full_score: int,
) -> Verdict:
    """Run an external comparison tool; exit status 0 means the outputs agree.

    The tool is called with the arguments, the absolute path of the standard
    output and the contestant's output, in that order. A string of arguments
    is split on whitespace.
    """
    arguments = diff_arguments.split() if isinstance(diff_arguments, str) else list(diff_arguments)
    command = [
        os.fspath(diff_path),
        *arguments,
        os.path.abspath(os.fspath(standard_output)),
        os.fspath(contestant_output),
    ]
    try:
        completed = subprocess.run(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return Verdict(0, ResultState.WRONG_ANSWER)
    if completed.returncode != 0:
        return Verdict(0, ResultState.WRONG_ANSWER)
    return _correct(full_score)