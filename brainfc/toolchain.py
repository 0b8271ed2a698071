from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


class ToolchainError(RuntimeError):
    """Raised when nasm, ld or the built program cannot be run."""

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


@dataclass
class Toolchain:
    """Assembles and links generated programs with nasm and ld."""

    assembler: str = "nasm"
    linker: str = "ld"
    timeout: Optional[float] = None

    def available(self) -> bool:
        return shutil.which(self.assembler) is not None and shutil.which(self.linker) is not None

    def build(self, assembly: str, workdir: Path, name: str = "main") -> Path:
        workdir = Path(workdir)
        workdir.mkdir(parents=True, exist_ok=True)
        asm_path = workdir / f"{name}.asm"
        object_path = workdir / f"{name}.o"
        exec_path = workdir / name

        asm_path.write_text(assembly, encoding="utf-8")
        self._invoke([self._locate(self.assembler), "-f", "elf64", "-o", str(object_path), str(asm_path)])
        self._invoke([self._locate(self.linker), "-o", str(exec_path), str(object_path)])
        return exec_path

    def execute(
        self,
        executable: Path,
        input_data: Optional[bytes] = None,
    ) -> subprocess.CompletedProcess:
        logger.debug("running %s", executable)
        try:
            return subprocess.run(
                [str(executable)],
                input=input_data if input_data is not None else b"",
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolchainError(f"{executable} timed out after {self.timeout} seconds") from exc
        except OSError as exc:
            raise ToolchainError(f"Cannot execute {executable}: {exc}") from exc

    def _locate(self, tool: str) -> str:
        path = shutil.which(tool)
        if path is None:
            raise ToolchainError(f"Required tool not found on PATH: {tool}")
        return path

    def _invoke(self, command: List[str]) -> None:
        logger.debug("invoking %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolchainError(f"{Path(command[0]).name} timed out after {self.timeout} seconds") from exc
        except OSError as exc:
            raise ToolchainError(f"Cannot run {Path(command[0]).name}: {exc}") from exc
        if result.returncode != 0:
            tool = Path(command[0]).name
            raise ToolchainError(
                f"{tool} failed with exit status {result.returncode}",
                stderr=result.stderr,
            )


__all__ = ["Toolchain", "ToolchainError"]
