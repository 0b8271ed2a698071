from __future__ import annotations

from typing import List, Optional

from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from brainfc.compiler import DEFAULT_TAPE_SIZE, CompileError, CompilerOptions, TapePolicy, translate
from brainfc.instructions import Instruction, instruction_list
from brainfc.interpreter import BrainfuckInterpreter, ExecutionState, StepLimitExceeded, TapeBoundsError


def _string_to_input_bytes(data: str) -> List[int]:
    return list(data.encode("utf-8"))


def _compile_error_detail(exc: CompileError) -> dict:
    return {
        "error": type(exc).__name__,
        "message": exc.message,
        "offset": exc.offset,
    }


class CompileRequest(BaseModel):
    source: str = ""
    tape_size: int = Field(default=DEFAULT_TAPE_SIZE, gt=0)
    tape_policy: TapePolicy = TapePolicy.UNCHECKED
    allow_input: bool = True
    signed_loop_test: bool = True

    @field_validator("tape_size")
    @classmethod
    def validate_tape_size(cls, value: int) -> int:
        if value % 16 != 0:
            raise ValueError("tape_size must be a multiple of 16")
        return value

    def to_options(self) -> CompilerOptions:
        return CompilerOptions(
            tape_size=self.tape_size,
            tape_policy=self.tape_policy,
            allow_input=self.allow_input,
            signed_loop_test=self.signed_loop_test,
        )


class RunRequest(CompileRequest):
    input: str = ""
    max_steps: int = Field(default=1_000_000, ge=1)


class CompileResponse(BaseModel):
    assembly: str
    instruction_count: int
    loop_count: int


class RunResponse(BaseModel):
    output: List[int]
    text: str
    steps: int


def create_app() -> FastAPI:
    app = FastAPI(title="brainfc API", version="0.1.0")

    @app.post("/api/compile", response_model=CompileResponse)
    def compile_program(payload: CompileRequest) -> CompileResponse:
        try:
            assembly = translate(payload.source, payload.to_options())
        except CompileError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=_compile_error_detail(exc),
            ) from exc
        instructions = instruction_list(payload.source)
        return CompileResponse(
            assembly=assembly,
            instruction_count=len(instructions),
            loop_count=instructions.count(Instruction.LOOP_START),
        )

    @app.post("/api/run", response_model=RunResponse)
    def run_program(payload: RunRequest) -> RunResponse:
        interpreter = BrainfuckInterpreter(payload.to_options())
        last_state: Optional[ExecutionState] = None
        try:
            for state in interpreter.step(
                payload.source,
                input_data=_string_to_input_bytes(payload.input),
                max_steps=payload.max_steps,
            ):
                last_state = state
        except CompileError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=_compile_error_detail(exc),
            ) from exc
        except StepLimitExceeded as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=str(exc),
            ) from exc
        except TapeBoundsError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc

        output = last_state.output if last_state is not None else b""
        return RunResponse(
            output=list(output),
            text=output.decode("latin-1"),
            steps=last_state.step if last_state is not None else 0,
        )

    return app


__all__ = ["CompileRequest", "RunRequest", "create_app"]
