from .compiler import (
    BracketMismatch,
    CompileError,
    CompilerOptions,
    FormattingFailure,
    TapePolicy,
    UnsupportedInstruction,
    UnterminatedLoop,
    X86Compiler,
    translate,
)
from .instructions import Instruction, Token, tokenize
from .interpreter import BrainfuckInterpreter, ExecutionState, StepLimitExceeded, TapeBoundsError
from .toolchain import Toolchain, ToolchainError

__all__ = [
    "BracketMismatch",
    "BrainfuckInterpreter",
    "CompileError",
    "CompilerOptions",
    "ExecutionState",
    "FormattingFailure",
    "Instruction",
    "StepLimitExceeded",
    "TapeBoundsError",
    "TapePolicy",
    "Token",
    "Toolchain",
    "ToolchainError",
    "UnsupportedInstruction",
    "UnterminatedLoop",
    "X86Compiler",
    "tokenize",
    "translate",
]
