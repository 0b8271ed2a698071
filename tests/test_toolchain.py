import os
from pathlib import Path
import platform
import shutil
import sys
import tempfile
import unittest

from brainfc import CompilerOptions, TapePolicy, Toolchain, ToolchainError, translate

HELLO_WORLD = (
    "++++++++++[>+++++++>++++++++++>+++>+<<<<-]>++.>+.+++++++..+++.>++."
    "<<+++++++++++++++.>.+++.------.--------.>+.>."
)

NATIVE_AVAILABLE = (
    sys.platform.startswith("linux")
    and platform.machine().lower() in {"x86_64", "amd64"}
    and shutil.which("nasm") is not None
    and shutil.which("ld") is not None
)


class ToolchainErrorTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_missing_assembler(self) -> None:
        toolchain = Toolchain(assembler="brainfc-missing-assembler")
        self.assertFalse(toolchain.available())
        with self.assertRaises(ToolchainError) as ctx:
            toolchain.build(translate("+"), self.tmp_path)
        self.assertIn("brainfc-missing-assembler", str(ctx.exception))

    def test_build_writes_assembly_before_invoking_tools(self) -> None:
        toolchain = Toolchain(assembler="brainfc-missing-assembler")
        with self.assertRaises(ToolchainError):
            toolchain.build(translate("+."), self.tmp_path, name="prog")
        self.assertEqual((self.tmp_path / "prog.asm").read_text(encoding="utf-8"), translate("+."))


    @unittest.skipUnless(os.name == "posix", "needs shebang execution")
    def test_tool_that_cannot_start_raises_toolchain_error(self) -> None:
        tool = self.tmp_path / "broken-nasm"
        tool.write_text("#!/brainfc/missing/interpreter\n", encoding="utf-8")
        tool.chmod(0o755)
        toolchain = Toolchain(assembler=str(tool))
        with self.assertRaises(ToolchainError) as ctx:
            toolchain.build(translate("+"), self.tmp_path / "build")
        self.assertIn("Cannot run broken-nasm", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, OSError)


@unittest.skipUnless(NATIVE_AVAILABLE, "nasm and ld on Linux x86-64 are required")
class NativeExecutionTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)
        self.toolchain = Toolchain(timeout=30)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def build_and_run(self, source: str, options=None, input_data: bytes = b""):
        executable = self.toolchain.build(translate(source, options), self.tmp_path)
        return self.toolchain.execute(executable, input_data=input_data)

    def test_empty_program_exits_cleanly(self) -> None:
        result = self.build_and_run("")
        self.assertEqual(result.returncode, 0)
        self.assertEqual(result.stdout, b"")

    def test_writes_single_byte(self) -> None:
        self.assertEqual(self.build_and_run("+++.").stdout, b"\x03")

    def test_increment_wraps(self) -> None:
        self.assertEqual(self.build_and_run("+" * 256 + ".").stdout, b"\x00")

    def test_decrement_wraps(self) -> None:
        self.assertEqual(self.build_and_run("-.").stdout, b"\xff")

    def test_hello_world(self) -> None:
        self.assertEqual(self.build_and_run(HELLO_WORLD).stdout, b"Hello World!\n")

    def test_cursor_round_trip_leaves_other_cells_zero(self) -> None:
        self.assertEqual(self.build_and_run(">>>+++<<<.>>>.").stdout, b"\x00\x03")

    def test_tape_is_zeroed(self) -> None:
        self.assertEqual(self.build_and_run(">" * 319 + ".").stdout, b"\x00")

    def test_reads_input(self) -> None:
        result = self.build_and_run(",+.,.", input_data=b"A")
        self.assertEqual(result.stdout, b"B\x00")

    def test_wrap_policy(self) -> None:
        options = CompilerOptions(tape_size=16, tape_policy=TapePolicy.WRAP)
        self.assertEqual(self.build_and_run("<+>" + "<" + ".", options).stdout, b"\x01")

    def test_abort_policy_exits_with_fault_status(self) -> None:
        options = CompilerOptions(tape_policy=TapePolicy.ABORT)
        result = self.build_and_run("+.<.", options)
        self.assertEqual(result.stdout, b"\x01")
        self.assertEqual(result.returncode, 1)


if __name__ == "__main__":
    unittest.main()
