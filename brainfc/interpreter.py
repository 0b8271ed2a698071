from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from .compiler import BracketMismatch, CompilerOptions, TapePolicy, UnsupportedInstruction, UnterminatedLoop
from .instructions import Instruction, Token, tokenize


class StepLimitExceeded(RuntimeError):
    """Raised when execution exceeds the configured step budget."""


class TapeBoundsError(IndexError):
    """Raised when the cursor leaves the tape under the unchecked or abort policy."""


@dataclass
class ExecutionState:
    step: int
    command: Optional[str]
    pointer: int
    output: bytes
    code_length: int


@dataclass
class BrainfuckInterpreter:
    """Executes programs with the same semantics as the generated x86 code.

    Loops test the cell the way the emitted ``cmp bl, 0`` / ``jle`` pair does,
    so with the default options a cell holding 128..255 ends a loop just like
    zero does.
    """

    options: CompilerOptions = field(default_factory=CompilerOptions)

    tape: List[int] = field(init=False, repr=False)
    pointer: int = field(init=False, repr=False)
    output_buffer: bytearray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.tape = [0] * self.options.tape_size
        self.pointer = 0
        self.output_buffer = bytearray()

    def run(
        self,
        code: str,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
    ) -> bytes:
        for _ in self.step(code, input_data=input_data, max_steps=max_steps):
            pass
        return bytes(self.output_buffer)

    def step(
        self,
        code: str,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
    ) -> Iterator[ExecutionState]:
        self.reset()
        program = list(tokenize(code))
        input_iter = iter(list(input_data or []))
        jump_map = self._build_jump_map(program)
        pc = 0
        steps = 0
        code_length = len(program)

        while pc < code_length:
            if max_steps is not None and steps >= max_steps:
                raise StepLimitExceeded("Brainfuck program exceeded allowed step count")

            token = program[pc]
            pc = self._execute_instruction(token, pc, jump_map, input_iter)
            steps += 1
            yield self._snapshot(token.instruction.value, steps, code_length)

        yield self._snapshot(None, steps, code_length)

    def _execute_instruction(
        self,
        token: Token,
        pc: int,
        jump_map: Dict[int, int],
        input_iter: Iterator[int],
    ) -> int:
        command = token.instruction
        new_pc = pc + 1
        if command is Instruction.MOVE_RIGHT:
            self._move(1)
        elif command is Instruction.MOVE_LEFT:
            self._move(-1)
        elif command is Instruction.INCREMENT:
            self.tape[self.pointer] = (self.tape[self.pointer] + 1) % 256
        elif command is Instruction.DECREMENT:
            self.tape[self.pointer] = (self.tape[self.pointer] - 1) % 256
        elif command is Instruction.OUTPUT:
            self.output_buffer.append(self.tape[self.pointer])
        elif command is Instruction.INPUT:
            try:
                self.tape[self.pointer] = next(input_iter) % 256
            except StopIteration:
                self.tape[self.pointer] = 0
        elif command is Instruction.LOOP_START:
            if not self._enters_loop(self.tape[self.pointer]):
                new_pc = jump_map[pc] + 1
        elif command is Instruction.LOOP_END:
            # The generated code jumps back unconditionally and re-tests at the entry.
            new_pc = jump_map[pc]
        return new_pc

    def _enters_loop(self, value: int) -> bool:
        if self.options.signed_loop_test:
            return 0 < value < 128
        return value != 0

    def _move(self, delta: int) -> None:
        size = self.options.tape_size
        target = self.pointer + delta
        if 0 <= target < size:
            self.pointer = target
            return
        policy = self.options.tape_policy
        if policy is TapePolicy.WRAP:
            self.pointer = target % size
        elif policy is TapePolicy.CLAMP:
            self.pointer = min(max(target, 0), size - 1)
        else:
            raise TapeBoundsError(f"Pointer moved outside the tape (cell {target}, tape size {size})")

    def _snapshot(self, command: Optional[str], step: int, code_length: int) -> ExecutionState:
        return ExecutionState(
            step=step,
            command=command,
            pointer=self.pointer,
            output=bytes(self.output_buffer),
            code_length=code_length,
        )

    def _build_jump_map(self, program: List[Token]) -> Dict[int, int]:
        jump_map: Dict[int, int] = {}
        stack: List[int] = []
        for index, token in enumerate(program):
            if token.instruction is Instruction.INPUT and not self.options.allow_input:
                raise UnsupportedInstruction("Input instruction ',' is disabled", token)
            if token.instruction is Instruction.LOOP_START:
                stack.append(index)
            elif token.instruction is Instruction.LOOP_END:
                if not stack:
                    raise BracketMismatch("Unmatched ']'", token)
                start = stack.pop()
                jump_map[start] = index
                jump_map[index] = start
        if stack:
            raise UnterminatedLoop(
                f"{len(stack)} unmatched '[' at end of input",
                program[stack[-1]],
            )
        return jump_map


__all__ = [
    "BrainfuckInterpreter",
    "ExecutionState",
    "StepLimitExceeded",
    "TapeBoundsError",
]
