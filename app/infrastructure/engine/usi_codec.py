"""Line parser and command encoder for the USI subset spoken with the engine.

Only the handful of messages the analysis service cares about are recognized.
Everything else the engine prints (``id``, ``option``, ``info`` lines without
a centipawn score) parses to no event at all.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Tuple, Union

_USIOK_RE = re.compile(r"\busiok\b")
_INIT_ERROR_RE = re.compile(r"Error!|failed to read")
_READYOK_RE = re.compile(r"\breadyok\b")
_SCORE_CP_RE = re.compile(r"score cp (-?\d+)")
_BESTMOVE_RE = re.compile(r"\bbestmove\s+(\S+)")


@dataclass(frozen=True)
class HandshakeAck:
    pass


@dataclass(frozen=True)
class InitError:
    message: str


@dataclass(frozen=True)
class ReadyAck:
    pass


@dataclass(frozen=True)
class ScoreUpdate:
    score: int


@dataclass(frozen=True)
class BestMove:
    move: str


Event = Union[HandshakeAck, InitError, ReadyAck, ScoreUpdate, BestMove]
ConfigValue = Union[str, int, bool]


def parse_line(line: str) -> Tuple[Event, ...]:
    """Return the events carried by a single line of engine output.

    Handshake, init error and ready acknowledgements are checked first and are
    exclusive. A search line may carry both a score and a best move, in which
    case the score comes first so it is recorded before the request settles.
    """
    if _USIOK_RE.search(line):
        return (HandshakeAck(),)
    if _INIT_ERROR_RE.search(line):
        return (InitError(line.strip()),)
    if _READYOK_RE.search(line):
        return (ReadyAck(),)

    events: Tuple[Event, ...] = ()
    score = _SCORE_CP_RE.search(line)
    if score:
        events += (ScoreUpdate(int(score.group(1))),)
    best = _BESTMOVE_RE.search(line)
    if best:
        events += (BestMove(best.group(1)),)
    return events


def _command(*parts: str) -> str:
    line = " ".join(parts)
    if "\n" in line or "\r" in line:
        raise ValueError(f"USI command must be a single line: {line!r}")
    return line + "\n"


def usi() -> str:
    return _command("usi")


def isready() -> str:
    return _command("isready")


def quit_engine() -> str:
    return _command("quit")


def setoption(name: str, value: ConfigValue) -> str:
    if value is True:
        rendered = "true"
    elif value is False:
        rendered = "false"
    else:
        rendered = str(value)
    return _command("setoption", "name", name, "value", rendered)


def position_sfen(position: str) -> str:
    if not position.strip():
        raise ValueError("position token must not be empty")
    return _command("position", "sfen", position.strip())


def go_depth(depth: int) -> str:
    if depth < 1:
        raise ValueError(f"search depth must be positive, got {depth}")
    return _command("go", "depth", str(depth))
