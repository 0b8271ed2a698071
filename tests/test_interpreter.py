import unittest

from brainfc import (
    BracketMismatch,
    BrainfuckInterpreter,
    CompilerOptions,
    StepLimitExceeded,
    TapeBoundsError,
    TapePolicy,
    UnsupportedInstruction,
    UnterminatedLoop,
)

HELLO_WORLD = (
    "++++++++++[>+++++++>++++++++++>+++>+<<<<-]>++.>+.+++++++..+++.>++."
    "<<+++++++++++++++.>.+++.------.--------.>+.>."
)


class BrainfuckInterpreterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.interpreter = BrainfuckInterpreter()

    def test_simple_output(self) -> None:
        self.assertEqual(self.interpreter.run("+++."), b"\x03")

    def test_increment_wraps(self) -> None:
        self.assertEqual(self.interpreter.run("+" * 256 + "."), b"\x00")

    def test_decrement_wraps(self) -> None:
        self.assertEqual(self.interpreter.run("-."), b"\xff")

    def test_hello_world(self) -> None:
        self.assertEqual(self.interpreter.run(HELLO_WORLD, max_steps=10_000), b"Hello World!\n")

    def test_cursor_round_trip(self) -> None:
        self.assertEqual(self.interpreter.run(">>>+++<<<."), b"\x00")
        self.assertEqual(self.interpreter.run(">>>+++<<<>>>."), b"\x03")

    def test_input_and_end_of_input(self) -> None:
        self.assertEqual(self.interpreter.run(",.,.", input_data=b"A"), b"A\x00")

    def test_signed_loop_test_skips_high_values(self) -> None:
        program = "+" * 200 + "[-]."
        self.assertEqual(self.interpreter.run(program), bytes([200]))

    def test_zero_loop_test_clears_high_values(self) -> None:
        interpreter = BrainfuckInterpreter(CompilerOptions(signed_loop_test=False))
        program = "+" * 200 + "[-]."
        self.assertEqual(interpreter.run(program), b"\x00")

    def test_step_limit_exceeded(self) -> None:
        with self.assertRaises(StepLimitExceeded):
            self.interpreter.run("+[]", max_steps=10)

    def test_step_yields_states(self) -> None:
        states = list(self.interpreter.step("a+b>+.<"))
        commands = [state.command for state in states[:-1]]
        self.assertEqual(commands, ["+", ">", "+", ".", "<"])
        self.assertEqual([state.pointer for state in states], [0, 1, 1, 1, 0, 0])
        self.assertEqual([state.step for state in states], [1, 2, 3, 4, 5, 5])
        self.assertIsNone(states[-1].command)
        self.assertEqual(states[-1].output, b"\x01")
        self.assertEqual(states[-1].code_length, 5)
        self.assertEqual(set(vars(states[-1])), {"step", "command", "pointer", "output", "code_length"})

    def test_run_resets_between_programs(self) -> None:
        self.interpreter.run("+++>")
        self.assertEqual(self.interpreter.run("."), b"\x00")


class InterpreterTapePolicyTests(unittest.TestCase):
    def test_unchecked_move_off_tape_raises(self) -> None:
        with self.assertRaises(TapeBoundsError):
            BrainfuckInterpreter().run("<")

    def test_abort_move_off_tape_raises(self) -> None:
        interpreter = BrainfuckInterpreter(CompilerOptions(tape_size=16, tape_policy=TapePolicy.ABORT))
        with self.assertRaises(TapeBoundsError):
            interpreter.run(">" * 16)

    def test_wrap(self) -> None:
        interpreter = BrainfuckInterpreter(CompilerOptions(tape_size=16, tape_policy=TapePolicy.WRAP))
        self.assertEqual(interpreter.run("<+." + ">" + "."), b"\x01\x00")
        self.assertEqual(interpreter.run(">" * 16 + "++" + "<" * 16 + "."), b"\x02")

    def test_clamp(self) -> None:
        interpreter = BrainfuckInterpreter(CompilerOptions(tape_size=16, tape_policy=TapePolicy.CLAMP))
        self.assertEqual(interpreter.run("<<+>."), b"\x00")
        self.assertEqual(interpreter.pointer, 1)
        interpreter.run(">" * 40)
        self.assertEqual(interpreter.pointer, 15)


class InterpreterErrorTests(unittest.TestCase):
    def test_bracket_errors_match_translator(self) -> None:
        with self.assertRaises(BracketMismatch):
            BrainfuckInterpreter().run("]")
        with self.assertRaises(UnterminatedLoop):
            BrainfuckInterpreter().run("[")

    def test_input_disabled(self) -> None:
        with self.assertRaises(UnsupportedInstruction):
            BrainfuckInterpreter(CompilerOptions(allow_input=False)).run(",")


if __name__ == "__main__":
    unittest.main()
