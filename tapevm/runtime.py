"""
tapevm/runtime.py
=================

Execution engine for tapevm programs.

This module provides:

* ``MachineState``   – program counter, tape head, tape, stack, terminated flag
* ``MachineIO``      – the byte streams ``read`` and ``print`` talk to
* ``step``           – the single-instruction transition function
* ``Interpreter``    – driver loop that steps until termination and attaches
                       a crash report to any fault
* ``RuntimeConfig``  – tuning knobs for the driver

Operand order
-------------
Binary operations pop the right-hand operand first, then the left-hand one:
``push 7; push 2; sub`` computes ``7 - 2``.  Division and modulo truncate
toward zero.

Faults
------
Every fault is an :class:`~tapevm.errors.ExecutionError`.  None of them is
recoverable; the driver re-raises after attaching diagnostics.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Dict, List, Optional

from tapevm.errors import (
    DivisionByZeroError,
    EndOfInputError,
    ExecutionError,
    InvalidLabelError,
    InvalidLineError,
    StackUnderflowError,
    TapeHeadUnderflowError,
    TerminatedError,
)
from tapevm.program import Instruction, Opcode, Program

logger = logging.getLogger(__name__)


# ===================================================================== #
#  Configuration                                                         #
# ===================================================================== #

@dataclass
class RuntimeConfig:
    """Driver configuration.

    Attributes
    ----------
    trace:
        Log every executed instruction at DEBUG level.
    crash_report:
        Snapshot the state before each step so that a fault can be reported
        against the state it happened in.  Costs one copy per step.
    """

    trace: bool = False
    crash_report: bool = True


# ===================================================================== #
#  Machine state                                                         #
# ===================================================================== #

@dataclass
class MachineState:
    program_counter: int = 0
    tape_head: int = 0
    tape: List[int] = field(default_factory=list)
    stack: List[int] = field(default_factory=list)
    terminated: bool = False

    def copy(self) -> MachineState:
        return MachineState(
            program_counter=self.program_counter,
            tape_head=self.tape_head,
            tape=list(self.tape),
            stack=list(self.stack),
            terminated=self.terminated,
        )

    # -- stack ---------------------------------------------------------------

    def pop(self) -> int:
        if not self.stack:
            raise StackUnderflowError()
        return self.stack.pop()

    def peek(self) -> int:
        if not self.stack:
            raise StackUnderflowError()
        return self.stack[-1]

    def push(self, value: int) -> None:
        self.stack.append(value)

    # -- tape ----------------------------------------------------------------

    def read_cell(self) -> int:
        # Cells never written by ``pop`` read as zero; reading does not grow the tape.
        if self.tape_head < len(self.tape):
            return self.tape[self.tape_head]
        return 0

    def grow_tape(self) -> None:
        if self.tape_head >= len(self.tape):
            self.tape.extend([0] * (self.tape_head + 1 - len(self.tape)))


@dataclass
class MachineIO:
    """Binary input/output streams used by ``read`` and ``print``."""

    stdin: BinaryIO
    stdout: BinaryIO

    @classmethod
    def from_streams(
        cls,
        stdin: Optional[BinaryIO] = None,
        stdout: Optional[BinaryIO] = None,
    ) -> MachineIO:
        return cls(
            stdin=stdin if stdin is not None else sys.stdin.buffer,
            stdout=stdout if stdout is not None else sys.stdout.buffer,
        )


# ===================================================================== #
#  Arithmetic                                                            #
# ===================================================================== #

def trunc_div(left: int, right: int) -> int:
    """Integer division truncating toward zero."""
    quotient = abs(left) // abs(right)
    return quotient if (left < 0) == (right < 0) else -quotient


def trunc_mod(left: int, right: int) -> int:
    """Remainder matching :func:`trunc_div` (sign follows the dividend)."""
    return left - right * trunc_div(left, right)


_BINARY_OPS: Dict[Opcode, Callable[[int, int], int]] = {
    Opcode.EQ: lambda l, r: int(l == r),
    Opcode.GT: lambda l, r: int(l > r),
    Opcode.LT: lambda l, r: int(l < r),
    Opcode.ADD: lambda l, r: l + r,
    Opcode.SUB: lambda l, r: l - r,
    Opcode.MULT: lambda l, r: l * r,
    Opcode.DIV: trunc_div,
    Opcode.MOD: trunc_mod,
}


# ===================================================================== #
#  Opcode dispatch                                                       #
# ===================================================================== #

Handler = Callable[[Program, MachineState, Instruction, MachineIO], None]

_DISPATCH: Dict[Opcode, Handler] = {}


def _register(*opcodes: Opcode):
    """Decorator: register an opcode handler."""
    def deco(fn: Handler) -> Handler:
        for op in opcodes:
            _DISPATCH[op] = fn
        return fn
    return deco


@_register(Opcode.LEFT)
def _exec_left(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    if state.tape_head == 0:
        raise TapeHeadUnderflowError()
    state.tape_head -= 1


@_register(Opcode.RIGHT)
def _exec_right(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    state.tape_head += 1


@_register(Opcode.PUSHT)
def _exec_pusht(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    state.push(state.read_cell())


@_register(Opcode.PUSH)
def _exec_push(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    if instr.is_label_ref:
        address = program.resolve(instr.operand)  # type: ignore[arg-type]
        if address is None:
            raise InvalidLabelError(instr.operand)  # type: ignore[arg-type]
        state.push(address)
    else:
        state.push(instr.operand)  # type: ignore[arg-type]


@_register(Opcode.POP)
def _exec_pop(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    state.grow_tape()
    state.tape[state.tape_head] = state.pop()


@_register(Opcode.DUP)
def _exec_dup(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    state.push(state.peek())


@_register(Opcode.DEL)
def _exec_del(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    state.pop()


@_register(Opcode.NOT)
def _exec_not(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    state.push(int(state.pop() == 0))


@_register(*_BINARY_OPS)
def _exec_binary(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    right = state.pop()
    left = state.pop()
    if right == 0 and instr.opcode in (Opcode.DIV, Opcode.MOD):
        raise DivisionByZeroError(instr.opcode.value)
    state.push(_BINARY_OPS[instr.opcode](left, right))


@_register(Opcode.READ)
def _exec_read(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    data = io.stdin.read(1)
    if not data:
        raise EndOfInputError()
    state.push(data[0])


@_register(Opcode.PRINT)
def _exec_print(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    # The low byte is printed as the Latin-1 character it names, UTF-8 encoded.
    io.stdout.write(chr(state.pop() & 0xFF).encode("utf-8"))
    io.stdout.flush()


def _jump(program: Program, state: MachineState, address: int) -> None:
    # Addresses are unsigned: a negative target lies past the end and terminates.
    state.program_counter = address if address >= 0 else len(program.instructions)


@_register(Opcode.JMP)
def _exec_jmp(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    _jump(program, state, state.pop())


@_register(Opcode.JMPC)
def _exec_jmpc(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    address = state.pop()
    if state.pop() != 0:
        _jump(program, state, address)


@_register(Opcode.NOP, Opcode.LABEL)
def _exec_nop(program: Program, state: MachineState, instr: Instruction, io: MachineIO) -> None:
    pass


# ===================================================================== #
#  Transition function                                                   #
# ===================================================================== #

def step(
    program: Program,
    state: MachineState,
    io: Optional[MachineIO] = None,
) -> MachineState:
    """Execute one instruction, mutating and returning *state*.

    A terminated state may resume only if something moved its program
    counter back inside the program; otherwise :class:`TerminatedError`.
    """
    size = len(program.instructions)
    if state.terminated:
        if state.program_counter < size:
            state.terminated = False
        else:
            raise TerminatedError()

    pc = state.program_counter
    if not 0 <= pc < size:
        raise InvalidLineError(pc)
    instr = program.instructions[pc]

    state.program_counter = pc + 1
    _DISPATCH[instr.opcode](program, state, instr, io or MachineIO.from_streams())

    if state.program_counter >= size:
        state.terminated = True
    return state


# ===================================================================== #
#  Diagnostics                                                           #
# ===================================================================== #

def format_crash_report(program: Program, state: MachineState, error: ExecutionError) -> str:
    """Describe *state* (taken before the failing step) and the fault."""
    pc = state.program_counter
    if 0 <= pc < len(program.instructions):
        offending = repr(program.instructions[pc])
    else:
        offending = "<none>"
    return (
        f"Program crashed, error: {error.kind}\n\n"
        f"State before failed execution:\n"
        f"Program counter: {pc}\n"
        f"Tape head: {state.tape_head}\n"
        f"Tape length: {len(state.tape)}\n"
        f"Stack size: {len(state.stack)} Command: {offending}\n\n"
        f"Program crashed with tape state:\n\n{state.tape}\n"
        f"stack = {state.stack}\n"
    )


def format_tape(state: MachineState) -> str:
    return f"\nProgram terminated with tape state:\n\n{state.tape}"


# ===================================================================== #
#  Driver                                                                #
# ===================================================================== #

class Interpreter:
    """Runs a program to termination.

    The interpreter owns a single :class:`MachineState`.  Any fault is
    re-raised after a crash report has been attached to it (see
    :attr:`~tapevm.errors.TapeVMError.report`).
    """

    def __init__(
        self,
        program: Program,
        config: Optional[RuntimeConfig] = None,
        stdin: Optional[BinaryIO] = None,
        stdout: Optional[BinaryIO] = None,
    ) -> None:
        self.program = program
        self.config = config or RuntimeConfig()
        self.io = MachineIO.from_streams(stdin, stdout)
        self.state = MachineState()
        self.steps = 0

    def step(self) -> MachineState:
        before = self.state.copy() if self.config.crash_report else None
        if self.config.trace and 0 <= self.state.program_counter < len(self.program):
            logger.debug(
                "step %d pc=%d %-10s head=%d stack=%s",
                self.steps,
                self.state.program_counter,
                self.program[self.state.program_counter].render() or "nop",
                self.state.tape_head,
                self.state.stack,
            )
        try:
            step(self.program, self.state, self.io)
        except ExecutionError as exc:
            exc.report = format_crash_report(self.program, before or self.state, exc)
            logger.debug("fault after %d steps: %s", self.steps, exc)
            raise
        self.steps += 1
        return self.state

    def run(self) -> MachineState:
        logger.info("running program of %d instructions", len(self.program))
        while not self.state.terminated:
            self.step()
        logger.info("terminated after %d steps", self.steps)
        return self.state


def run(
    program: Program,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[BinaryIO] = None,
    config: Optional[RuntimeConfig] = None,
) -> MachineState:
    """Run *program* to termination and return the final state."""
    return Interpreter(program, config=config, stdin=stdin, stdout=stdout).run()


__all__ = [
    "RuntimeConfig",
    "MachineState",
    "MachineIO",
    "trunc_div",
    "trunc_mod",
    "step",
    "format_crash_report",
    "format_tape",
    "Interpreter",
    "run",
]
