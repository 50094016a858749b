# tapevm/errors.py
"""
tapevm Error Types

Every fault in the toolchain is fatal: the parser aborts before execution
begins, the interpreter aborts the run, and the obfuscator aborts before
writing anything.  The classes below exist so that callers (the CLI, the
tests) can tell *which* fault occurred and report it, not so that anyone
can recover from it.

Hierarchy:
──────────
┌─────────────────────────────────────────────────────────────────────────┐
│  TapeVMError (base)                                                     │
│  ├── AssemblyError          - malformed source (parse phase)            │
│  │   ├── UnknownMnemonicError                                           │
│  │   ├── MissingOperandError                                            │
│  │   └── EmptyLabelError                                                │
│  ├── ExecutionError         - machine faults (runtime phase)            │
│  │   ├── TerminatedError                                                │
│  │   ├── InvalidLineError                                               │
│  │   ├── InvalidLabelError                                              │
│  │   ├── StackUnderflowError                                            │
│  │   ├── TapeHeadUnderflowError                                         │
│  │   ├── DivisionByZeroError                                            │
│  │   └── EndOfInputError                                                │
│  └── ObfuscationError       - broken obfuscation invariant              │
│      └── UnresolvedLabelError                                           │
└─────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each error carries a code ``TVM-NNNN``:
  - 1000-1999: Assembly (parse) errors
  - 5000-5999: Execution errors
  - 6000-6999: Obfuscation errors
  - 9000-9999: Internal errors
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Optional


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorPhase(Enum):
    """Pipeline phase in which the error was raised."""

    PARSE = "parse"
    RUNTIME = "runtime"
    OBFUSCATION = "obfuscation"
    INTERNAL = "internal"


class ErrorCode:
    """
    Structured error code of the form ``PREFIX-NNNN``.
    """

    __slots__ = ("prefix", "number", "name", "phase")

    def __init__(self, prefix: str, number: int, name: str, phase: ErrorPhase) -> None:
        self.prefix = prefix
        self.number = number
        self.name = name
        self.phase = phase

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class TapeVMErrorCodes:
    """Predefined error codes."""

    # ─── Assembly ────────────────────────────────────────────────────────────
    UNKNOWN_MNEMONIC = ErrorCode("TVM", 1000, "UnknownMnemonic", ErrorPhase.PARSE)
    MISSING_OPERAND = ErrorCode("TVM", 1001, "MissingOperand", ErrorPhase.PARSE)
    EMPTY_LABEL = ErrorCode("TVM", 1002, "EmptyLabel", ErrorPhase.PARSE)
    MALFORMED_LINE = ErrorCode("TVM", 1003, "MalformedLine", ErrorPhase.PARSE)

    # ─── Execution ───────────────────────────────────────────────────────────
    TERMINATED = ErrorCode("TVM", 5000, "Terminated", ErrorPhase.RUNTIME)
    INVALID_LINE = ErrorCode("TVM", 5001, "InvalidLine", ErrorPhase.RUNTIME)
    INVALID_LABEL = ErrorCode("TVM", 5002, "InvalidLabel", ErrorPhase.RUNTIME)
    STACK_UNDERFLOW = ErrorCode("TVM", 5003, "StackUnderflow", ErrorPhase.RUNTIME)
    TAPE_HEAD_UNDERFLOW = ErrorCode("TVM", 5004, "TapeHeadUnderflow", ErrorPhase.RUNTIME)
    DIVISION_BY_ZERO = ErrorCode("TVM", 5005, "DivisionByZero", ErrorPhase.RUNTIME)
    END_OF_INPUT = ErrorCode("TVM", 5006, "EndOfInput", ErrorPhase.RUNTIME)

    # ─── Obfuscation ─────────────────────────────────────────────────────────
    UNRESOLVED_LABEL = ErrorCode("TVM", 6000, "UnresolvedLabel", ErrorPhase.OBFUSCATION)

    # ─── Internal ────────────────────────────────────────────────────────────
    INTERNAL_ERROR = ErrorCode("TVM", 9000, "Internal", ErrorPhase.INTERNAL)


# ═══════════════════════════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════════════════════════

class TapeVMError(Exception):
    """
    Base exception for all tapevm errors.

    ``report`` is an optional multi-line diagnostic attached by whoever
    catches the error with more context than the raiser had (the
    interpreter attaches a machine-state snapshot, for example).
    """

    default_code: ErrorCode = TapeVMErrorCodes.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.report: str = ""

    @property
    def phase(self) -> ErrorPhase:
        return self.code.phase

    @property
    def kind(self) -> str:
        """Short error kind name, e.g. ``StackUnderflow``."""
        return self.code.name

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


# ───────────────────────────────────────────────────────────────────────────────
# ASSEMBLY ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class AssemblyError(TapeVMError):
    """Malformed source text."""

    default_code = TapeVMErrorCodes.MALFORMED_LINE

    def __init__(
        self,
        message: str,
        line_number: int,
        line: str,
        code: Optional[ErrorCode] = None,
    ) -> None:
        super().__init__(f"line {line_number}: {message} (offending line: {line!r})", code)
        self.line_number = line_number
        self.line = line


class UnknownMnemonicError(AssemblyError):
    """First token is neither an opcode nor a label declaration."""

    default_code = TapeVMErrorCodes.UNKNOWN_MNEMONIC

    def __init__(self, mnemonic: str, line_number: int, line: str) -> None:
        super().__init__(
            f"unknown instruction {mnemonic!r}; labels must end with a colon",
            line_number,
            line,
        )
        self.mnemonic = mnemonic


class MissingOperandError(AssemblyError):
    default_code = TapeVMErrorCodes.MISSING_OPERAND

    def __init__(self, mnemonic: str, line_number: int, line: str) -> None:
        super().__init__(f"{mnemonic!r} requires an operand", line_number, line)
        self.mnemonic = mnemonic


class EmptyLabelError(AssemblyError):
    default_code = TapeVMErrorCodes.EMPTY_LABEL

    def __init__(self, line_number: int, line: str) -> None:
        super().__init__("label declaration has an empty name", line_number, line)


# ───────────────────────────────────────────────────────────────────────────────
# EXECUTION ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class ExecutionError(TapeVMError):
    """A machine fault.  Always aborts the run."""

    default_code = TapeVMErrorCodes.TERMINATED


class TerminatedError(ExecutionError):
    """Step requested after the program ran off its end."""

    default_code = TapeVMErrorCodes.TERMINATED

    def __init__(self) -> None:
        super().__init__("machine has already terminated")


class InvalidLineError(ExecutionError):
    """Program counter points outside the instruction sequence."""

    default_code = TapeVMErrorCodes.INVALID_LINE

    def __init__(self, line: int) -> None:
        super().__init__(f"no instruction at address {line}")
        self.line = line


class InvalidLabelError(ExecutionError):
    default_code = TapeVMErrorCodes.INVALID_LABEL

    def __init__(self, label: str) -> None:
        super().__init__(f"undeclared label {label!r}")
        self.label = label


class StackUnderflowError(ExecutionError):
    default_code = TapeVMErrorCodes.STACK_UNDERFLOW

    def __init__(self) -> None:
        super().__init__("pop from empty stack")


class TapeHeadUnderflowError(ExecutionError):
    default_code = TapeVMErrorCodes.TAPE_HEAD_UNDERFLOW

    def __init__(self) -> None:
        super().__init__("tape head moved left of position 0")


class DivisionByZeroError(ExecutionError):
    default_code = TapeVMErrorCodes.DIVISION_BY_ZERO

    def __init__(self, opcode: str) -> None:
        super().__init__(f"{opcode} by zero")
        self.opcode = opcode


class EndOfInputError(ExecutionError):
    default_code = TapeVMErrorCodes.END_OF_INPUT

    def __init__(self) -> None:
        super().__init__("read past end of input")


# ───────────────────────────────────────────────────────────────────────────────
# OBFUSCATION ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class ObfuscationError(TapeVMError):
    default_code = TapeVMErrorCodes.UNRESOLVED_LABEL


class UnresolvedLabelError(ObfuscationError):
    """A label reference survived to resolution with no declaration."""

    default_code = TapeVMErrorCodes.UNRESOLVED_LABEL

    def __init__(self, label: str) -> None:
        super().__init__(f"cannot resolve label {label!r}")
        self.label = label


__all__ = [
    "ErrorPhase",
    "ErrorCode",
    "TapeVMErrorCodes",
    "TapeVMError",
    "AssemblyError",
    "UnknownMnemonicError",
    "MissingOperandError",
    "EmptyLabelError",
    "ExecutionError",
    "TerminatedError",
    "InvalidLineError",
    "InvalidLabelError",
    "StackUnderflowError",
    "TapeHeadUnderflowError",
    "DivisionByZeroError",
    "EndOfInputError",
    "ObfuscationError",
    "UnresolvedLabelError",
]
