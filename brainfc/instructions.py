from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List


class Instruction(str, Enum):
    INCREMENT = "+"
    DECREMENT = "-"
    MOVE_LEFT = "<"
    MOVE_RIGHT = ">"
    OUTPUT = "."
    INPUT = ","
    LOOP_START = "["
    LOOP_END = "]"


COMMANDS = frozenset(member.value for member in Instruction)


@dataclass(frozen=True)
class Token:
    instruction: Instruction
    offset: int
    line: int
    column: int


def tokenize(source: str) -> Iterator[Token]:
    """Yield every command character of ``source`` with its position.

    Lines and columns are 1-based, offsets are 0-based. Anything that is not
    one of the eight commands is a comment and produces no token.
    """
    line = 1
    column = 1
    for offset, char in enumerate(source):
        if char in COMMANDS:
            yield Token(Instruction(char), offset, line, column)
        if char == "\n":
            line += 1
            column = 1
        else:
            column += 1


def strip_comments(source: str) -> str:
    return "".join(char for char in source if char in COMMANDS)


def instruction_list(source: str) -> List[Instruction]:
    return [token.instruction for token in tokenize(source)]


__all__ = [
    "COMMANDS",
    "Instruction",
    "Token",
    "instruction_list",
    "strip_comments",
    "tokenize",
]
