# tests/conftest.py
"""
Shared fixtures and sample programs for the tapevm test suite.
"""

from __future__ import annotations

import io
import random

import pytest

from tapevm.obfuscator import ObfuscationConfig
from tapevm.parser import parse
from tapevm.program import Program
from tapevm.runtime import MachineIO, MachineState, run


# ═══════════════════════════════════════════════════════════════════════════
#  Sample programs
# ═══════════════════════════════════════════════════════════════════════════

# Prints "321" by counting tape[0] down from 3; terminates with tape [0].
COUNTDOWN_SRC = """\
push 3
pop
loop:
pusht
push 48
add
print
pusht
push 1
sub
pop
pusht
push loop
jmpc
"""

# Copies three bytes of input to output.
ECHO_SRC = """\
read
print
read
print
read
print
"""

# Same countdown with comments, blank lines, odd casing and whitespace.
NOISY_SRC = """\
# counts down from three
PUSH 3
  pop

// the loop body
Loop:
\tpusht ; current value
push 48
add
print
pusht
push 1
sub
pop
pusht
push LOOP
jmpc
"""

# Exercises every arithmetic/comparison opcode and writes results to the tape.
ARITHMETIC_SRC = """\
push 7
push 2
sub
pop
right
push -7
push 2
div
pop
right
push -7
push 2
mod
pop
right
push 3
push 5
lt
pop
right
push 6
push 7
mult
pop
right
push 0
not
pop
"""


# ═══════════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════════

def execute(program: Program, stdin: bytes = b"") -> tuple[MachineState, bytes]:
    """Run *program* against in-memory streams; return final state and output."""
    out = io.BytesIO()
    state = run(program, stdin=io.BytesIO(stdin), stdout=out)
    return state, out.getvalue()


def make_io(stdin: bytes = b"") -> MachineIO:
    return MachineIO(stdin=io.BytesIO(stdin), stdout=io.BytesIO())


def light_config(**overrides) -> ObfuscationConfig:
    """A cheaper obfuscation config that never writes to disk."""
    config = ObfuscationConfig(output_path=None).scaled(0.1)
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


# ═══════════════════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def countdown() -> Program:
    return parse(COUNTDOWN_SRC)


@pytest.fixture
def echo() -> Program:
    return parse(ECHO_SRC)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)
