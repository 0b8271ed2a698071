from __future__ import annotations

import argparse
import logging
import sys
import tempfile
from pathlib import Path
from typing import Optional

from .compiler import CompileError, CompilerOptions, TapePolicy, translate
from .interpreter import BrainfuckInterpreter, StepLimitExceeded, TapeBoundsError
from .toolchain import Toolchain, ToolchainError

logger = logging.getLogger(__name__)

QUIT_COMMANDS = {"q", "quit", "exit"}


def _read_source(path: str) -> str:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    return source_path.read_text(encoding="utf-8")


def _write_output(path: str, data: str) -> None:
    output_path = Path(path)
    output_path.write_text(data, encoding="utf-8")


def _write_program_output(data: bytes) -> None:
    buffer = getattr(sys.stdout, "buffer", None)
    if buffer is not None:
        sys.stdout.flush()
        buffer.write(data)
        buffer.flush()
    else:
        sys.stdout.write(data.decode("latin-1"))


def _options_from_args(args: argparse.Namespace) -> CompilerOptions:
    return CompilerOptions(
        tape_size=args.tape_size,
        tape_policy=TapePolicy(args.tape_policy),
        allow_input=not args.no_input,
        signed_loop_test=not args.zero_loop_test,
    )


class ProgramRunner:
    """Builds and runs one program, natively when possible."""

    def __init__(
        self,
        options: CompilerOptions,
        *,
        interpret: bool = False,
        toolchain: Optional[Toolchain] = None,
        max_steps: Optional[int] = None,
    ) -> None:
        self.options = options
        self.toolchain = toolchain or Toolchain()
        self.interpret = interpret
        self.max_steps = max_steps
        if not interpret and not self.toolchain.available():
            logger.warning(
                "%s or %s not found; falling back to the interpreter",
                self.toolchain.assembler,
                self.toolchain.linker,
            )
            self.interpret = True

    def run(self, source: str, input_data: bytes, workdir: Path) -> int:
        assembly = translate(source, self.options)
        if self.interpret:
            interpreter = BrainfuckInterpreter(self.options)
            output = interpreter.run(source, input_data=input_data, max_steps=self.max_steps)
            _write_program_output(output)
            return 0
        executable = self.toolchain.build(assembly, workdir)
        result = self.toolchain.execute(executable, input_data=input_data)
        _write_program_output(result.stdout)
        if result.stderr:
            sys.stderr.write(result.stderr.decode("utf-8", errors="replace"))
        logger.debug("%s exited with status %d", executable, result.returncode)
        return result.returncode


def run_repl(runner: ProgramRunner, workdir: Path) -> None:
    while True:
        try:
            line = input(">> ")
        except EOFError:
            print()
            break
        if line.strip().lower() in QUIT_COMMANDS:
            break
        if not line.strip():
            continue
        try:
            runner.run(line, b"", workdir)
        except CompileError as exc:
            print(f"error: {exc}", file=sys.stderr)
        except ToolchainError as exc:
            print(f"error: {exc}", file=sys.stderr)
            if exc.stderr:
                sys.stderr.write(exc.stderr)
        except (StepLimitExceeded, TapeBoundsError) as exc:
            print(f"error: {exc}", file=sys.stderr)
        sys.stdout.write("\n")


def _cmd_compile(args: argparse.Namespace) -> int:
    source_text = _read_source(args.source)
    assembly = translate(source_text, _options_from_args(args))
    if args.output:
        _write_output(args.output, assembly)
        logger.debug("wrote %s", args.output)
    else:
        sys.stdout.write(assembly)
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    source_text = _read_source(args.source)
    runner = ProgramRunner(
        _options_from_args(args),
        interpret=args.interpret,
        max_steps=args.max_steps,
    )
    with tempfile.TemporaryDirectory(prefix="brainfc-") as tmp:
        return runner.run(source_text, args.input.encode("utf-8"), Path(tmp))


def _cmd_repl(args: argparse.Namespace) -> int:
    runner = ProgramRunner(
        _options_from_args(args),
        interpret=args.interpret,
        max_steps=args.max_steps,
    )
    with tempfile.TemporaryDirectory(prefix="brainfc-") as tmp:
        run_repl(runner, Path(tmp))
    return 0


def _add_compiler_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--tape-size",
        type=int,
        default=CompilerOptions().tape_size,
        help="Tape size in bytes, a multiple of 16 (default: %(default)s)",
    )
    parser.add_argument(
        "--tape-policy",
        choices=[policy.value for policy in TapePolicy],
        default=TapePolicy.UNCHECKED.value,
        help="What happens when the cursor leaves the tape (default: %(default)s)",
    )
    parser.add_argument(
        "--no-input",
        action="store_true",
        help="Reject programs that use the ',' instruction",
    )
    parser.add_argument(
        "--zero-loop-test",
        action="store_true",
        help="Enter loops on any non-zero cell instead of a positive signed byte",
    )


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--interpret",
        action="store_true",
        help="Use the built-in interpreter instead of nasm and ld",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Step limit for the interpreter",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="brainfc",
        description="Compile Brainfuck programs to x86-64 assembly for Linux",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    compile_parser = commands.add_parser("compile", help="Compile a program to NASM assembly")
    compile_parser.add_argument("source", help="Path to the Brainfuck source file")
    compile_parser.add_argument(
        "-o",
        "--output",
        help="Destination file for the assembly (default: print to stdout)",
    )
    _add_compiler_arguments(compile_parser)
    compile_parser.set_defaults(handler=_cmd_compile)

    run_parser = commands.add_parser("run", help="Compile, link and run a program")
    run_parser.add_argument("source", help="Path to the Brainfuck source file")
    run_parser.add_argument(
        "--input",
        default="",
        help="String supplied to the program on standard input",
    )
    _add_compiler_arguments(run_parser)
    _add_run_arguments(run_parser)
    run_parser.set_defaults(handler=_cmd_run)

    repl_parser = commands.add_parser(
        "repl",
        help="Read programs line by line and run them (needs nasm and ld unless --interpret)",
    )
    _add_compiler_arguments(repl_parser)
    _add_run_arguments(repl_parser)
    repl_parser.set_defaults(handler=_cmd_repl)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.handler(args)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except UnicodeDecodeError as exc:
        print(f"Cannot decode source file as UTF-8: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Invalid option: {exc}", file=sys.stderr)
        return 1
    except CompileError as exc:
        print(f"Compilation error: {exc}", file=sys.stderr)
        return 1
    except ToolchainError as exc:
        print(f"Toolchain error: {exc}", file=sys.stderr)
        if exc.stderr:
            sys.stderr.write(exc.stderr)
        return 1
    except (StepLimitExceeded, TapeBoundsError) as exc:
        print(f"Runtime error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
