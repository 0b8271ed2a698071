from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .instructions import Instruction, Token, tokenize


class CompileError(Exception):
    """Base class for every error the translator reports."""

    def __init__(self, message: str, token: Optional[Token] = None) -> None:
        super().__init__(message)
        self.message = message
        self.offset: Optional[int] = token.offset if token is not None else None
        self.line: Optional[int] = token.line if token is not None else None
        self.column: Optional[int] = token.column if token is not None else None

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} (line {self.line}, column {self.column})"


class BracketMismatch(CompileError):
    pass


class UnterminatedLoop(CompileError):
    pass


class UnsupportedInstruction(CompileError):
    pass


class FormattingFailure(CompileError):
    pass


class TapePolicy(str, Enum):
    UNCHECKED = "unchecked"
    WRAP = "wrap"
    CLAMP = "clamp"
    ABORT = "abort"


DEFAULT_TAPE_SIZE = 16 * 20

# Cell k is addressed as [rbp + rax - 9] with rax == -k; [rbp - 8] holds rax
# while a system call clobbers it.
CELL = "byte [rbp + rax - 9]"
CELL_ADDRESS = "[rbp + rax - 9]"
SAVE_SLOT = "qword [rbp - 8]"

SYS_READ = 0
SYS_WRITE = 1
SYS_EXIT = 60
STDIN = 0
STDOUT = 1

ZERO_LOOP_LABEL = "zero_tape"
TAPE_FAULT_LABEL = "tape_fault"
TAPE_FAULT_STATUS = 1


@dataclass(frozen=True)
class CompilerOptions:
    tape_size: int = DEFAULT_TAPE_SIZE
    tape_policy: TapePolicy = TapePolicy.UNCHECKED
    allow_input: bool = True
    signed_loop_test: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.tape_size, bool) or not isinstance(self.tape_size, int):
            raise ValueError(f"tape_size must be an integer, got {self.tape_size!r}")
        if self.tape_size <= 0 or self.tape_size % 16 != 0:
            raise ValueError(f"tape_size must be a positive multiple of 16, got {self.tape_size}")
        # Accept plain strings such as "wrap" from the CLI and the web layer.
        object.__setattr__(self, "tape_policy", TapePolicy(self.tape_policy))


class AssemblyWriter:
    """Accumulates NASM source, one line per instruction or label."""

    def __init__(self) -> None:
        self.lines: List[str] = []

    def directive(self, template: str, **fields: object) -> None:
        self.lines.append(self._format(template, fields))

    def label(self, template: str, **fields: object) -> None:
        self.lines.append(self._format(template, fields) + ":")

    def emit(self, template: str, **fields: object) -> None:
        self.lines.append("    " + self._format(template, fields))

    def getvalue(self) -> str:
        return "\n".join(self.lines) + "\n"

    @staticmethod
    def _format(template: str, fields: dict) -> str:
        try:
            return template.format(**fields)
        except (KeyError, IndexError, ValueError) as exc:
            raise FormattingFailure(f"Cannot format assembly template {template!r}: {exc}") from exc


@dataclass
class CodeGenState:
    writer: AssemblyWriter
    next_label: int = 0
    scope_stack: List[Tuple[int, Token]] = field(default_factory=list)
    uses_tape_fault: bool = False


class X86Compiler:
    def __init__(self, options: Optional[CompilerOptions] = None) -> None:
        self.options = options or CompilerOptions()

    def compile(self, source: str) -> str:
        state = CodeGenState(writer=AssemblyWriter())
        self._emit_prologue(state)
        for token in tokenize(source):
            self._emit_instruction(token, state)
        if state.scope_stack:
            _, token = state.scope_stack[-1]
            raise UnterminatedLoop(
                f"{len(state.scope_stack)} unmatched '[' at end of input",
                token,
            )
        self._emit_epilogue(state)
        return state.writer.getvalue()

    # --- Framing ---

    def _emit_prologue(self, state: CodeGenState) -> None:
        out = state.writer
        frame_size = self.options.tape_size + 16
        out.directive("global _start")
        out.directive("section .text")
        out.label("_start")
        out.emit("mov rbp, rsp")
        out.emit("sub rsp, {size}", size=frame_size)
        # Zero 16-byte chunks from rbp-16 down to rbp-frame_size; this covers
        # the save slot and the whole tape. movdqa needs the 16-byte alignment
        # rsp has at process entry.
        out.emit("pxor xmm0, xmm0")
        out.emit("mov rax, -16")
        out.label(ZERO_LOOP_LABEL)
        out.emit("movdqa [rbp + rax], xmm0")
        out.emit("sub rax, 16")
        out.emit("cmp rax, {limit}", limit=-frame_size)
        out.emit("jge {label}", label=ZERO_LOOP_LABEL)
        out.emit("mov rax, 0")
        out.emit("mov rbx, 0")

    def _emit_epilogue(self, state: CodeGenState) -> None:
        out = state.writer
        out.emit("mov rax, {nr}", nr=SYS_EXIT)
        out.emit("mov rdi, 0")
        out.emit("syscall")
        if state.uses_tape_fault:
            out.label(TAPE_FAULT_LABEL)
            out.emit("mov rax, {nr}", nr=SYS_EXIT)
            out.emit("mov rdi, {status}", status=TAPE_FAULT_STATUS)
            out.emit("syscall")

    # --- Instructions ---

    def _emit_instruction(self, token: Token, state: CodeGenState) -> None:
        instruction = token.instruction
        out = state.writer
        if instruction is Instruction.INCREMENT:
            out.emit("inc bl")
        elif instruction is Instruction.DECREMENT:
            out.emit("dec bl")
        elif instruction is Instruction.MOVE_LEFT:
            self._emit_move(state, left=True)
        elif instruction is Instruction.MOVE_RIGHT:
            self._emit_move(state, left=False)
        elif instruction is Instruction.OUTPUT:
            self._emit_output(state)
        elif instruction is Instruction.INPUT:
            if not self.options.allow_input:
                raise UnsupportedInstruction("Input instruction ',' is disabled", token)
            self._emit_input(state)
        elif instruction is Instruction.LOOP_START:
            self._emit_loop_start(token, state)
        elif instruction is Instruction.LOOP_END:
            self._emit_loop_end(token, state)

    def _emit_move(self, state: CodeGenState, *, left: bool) -> None:
        out = state.writer
        out.emit("mov {cell}, bl", cell=CELL)
        # Cells grow towards lower addresses, so moving left increments rax.
        out.emit("inc rax" if left else "dec rax")
        self._emit_tape_policy(state, left=left)
        out.emit("mov bl, {cell}", cell=CELL)

    def _emit_tape_policy(self, state: CodeGenState, *, left: bool) -> None:
        policy = self.options.tape_policy
        if policy is TapePolicy.UNCHECKED:
            return
        out = state.writer
        size = self.options.tape_size
        lowest = -(size - 1)
        if policy is TapePolicy.WRAP:
            if left:
                out.emit("lea rcx, [rax - {size}]", size=size)
                out.emit("cmp rax, 0")
                out.emit("cmovg rax, rcx")
            else:
                out.emit("lea rcx, [rax + {size}]", size=size)
                out.emit("cmp rax, {lowest}", lowest=lowest)
                out.emit("cmovl rax, rcx")
        elif policy is TapePolicy.CLAMP:
            if left:
                out.emit("xor ecx, ecx")
                out.emit("cmp rax, 0")
                out.emit("cmovg rax, rcx")
            else:
                out.emit("mov rcx, {lowest}", lowest=lowest)
                out.emit("cmp rax, rcx")
                out.emit("cmovl rax, rcx")
        elif policy is TapePolicy.ABORT:
            state.uses_tape_fault = True
            if left:
                out.emit("cmp rax, 0")
                out.emit("jg {label}", label=TAPE_FAULT_LABEL)
            else:
                out.emit("cmp rax, {lowest}", lowest=lowest)
                out.emit("jl {label}", label=TAPE_FAULT_LABEL)

    def _emit_output(self, state: CodeGenState) -> None:
        out = state.writer
        out.emit("mov {cell}, bl", cell=CELL)
        out.emit("lea rsi, {address}", address=CELL_ADDRESS)
        out.emit("mov {slot}, rax", slot=SAVE_SLOT)
        out.emit("mov rax, {nr}", nr=SYS_WRITE)
        out.emit("mov rdi, {fd}", fd=STDOUT)
        out.emit("mov rdx, 1")
        out.emit("syscall")
        out.emit("mov rax, {slot}", slot=SAVE_SLOT)

    def _emit_input(self, state: CodeGenState) -> None:
        out = state.writer
        # The cell is zeroed first so that end of input reads as 0.
        out.emit("mov {cell}, 0", cell=CELL)
        out.emit("lea rsi, {address}", address=CELL_ADDRESS)
        out.emit("mov {slot}, rax", slot=SAVE_SLOT)
        out.emit("mov rax, {nr}", nr=SYS_READ)
        out.emit("mov rdi, {fd}", fd=STDIN)
        out.emit("mov rdx, 1")
        out.emit("syscall")
        out.emit("mov rax, {slot}", slot=SAVE_SLOT)
        out.emit("mov bl, {cell}", cell=CELL)

    def _emit_loop_start(self, token: Token, state: CodeGenState) -> None:
        out = state.writer
        index = state.next_label
        state.next_label += 1
        state.scope_stack.append((index, token))
        out.label("entry_{index}", index=index)
        if self.options.signed_loop_test:
            out.emit("cmp bl, 0")
            out.emit("jle exit_{index}", index=index)
        else:
            out.emit("test bl, bl")
            out.emit("jz exit_{index}", index=index)

    def _emit_loop_end(self, token: Token, state: CodeGenState) -> None:
        if not state.scope_stack:
            raise BracketMismatch("Unmatched ']'", token)
        index, _ = state.scope_stack.pop()
        out = state.writer
        out.emit("jmp entry_{index}", index=index)
        out.label("exit_{index}", index=index)


def translate(source: str, options: Optional[CompilerOptions] = None) -> str:
    return X86Compiler(options).compile(source)


__all__ = [
    "AssemblyWriter",
    "BracketMismatch",
    "CompileError",
    "CompilerOptions",
    "DEFAULT_TAPE_SIZE",
    "FormattingFailure",
    "TapePolicy",
    "UnsupportedInstruction",
    "UnterminatedLoop",
    "X86Compiler",
    "translate",
]
