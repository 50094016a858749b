"""
tapevm/obfuscator.py
════════════════════

Source-to-source obfuscation.  Rewrites a parsed program into one that
behaves identically but is much harder to read:

    Program
       │  strip NOPs
       │  pad with NOPs at random positions
       │  splice in dead-code sequences at random positions
       │  re-index labels, resolve ``push <label>`` to absolute addresses
       │  erase label declarations
       ▼
    Program (label-free)
       │  render with random indentation / trailing whitespace
       ▼
    bytes  ──►  fuxxor.mxc

Every dead-code sequence pushes what it consumes and consumes what it
pushes, and touches neither the tape nor the tape head, so inserting one
between any two instructions is invisible to the program.  Label addresses
are only fixed after all insertions, which is why jumps must go through
labels: a hard-coded numeric jump target is not rewritten.

All randomness comes from the ``random.Random`` passed in; a seeded
generator makes the output reproducible.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from tapevm.errors import UnresolvedLabelError
from tapevm.program import NOP, Instruction, Opcode, Program, index_labels

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_PATH = "fuxxor.mxc"

DeadCodeGenerator = Callable[[random.Random], List[Instruction]]


# ═══════════════════════════════════════════════════════════════════
#  Dead-code patterns
# ═══════════════════════════════════════════════════════════════════

def _small(rng: random.Random) -> int:
    return rng.randint(-3, 9)


def _nonzero(rng: random.Random) -> int:
    return rng.randint(3, 9)


def push_discard(rng: random.Random) -> List[Instruction]:
    return [Instruction.push(_small(rng)), Instruction(Opcode.DEL)]


def add_discard(rng: random.Random) -> List[Instruction]:
    return [
        Instruction.push(_small(rng)),
        Instruction.push(_small(rng)),
        Instruction(Opcode.ADD),
        Instruction(Opcode.DEL),
    ]


def sub_discard(rng: random.Random) -> List[Instruction]:
    return [
        Instruction.push(_small(rng)),
        Instruction.push(_small(rng)),
        Instruction(Opcode.SUB),
        Instruction(Opcode.DEL),
    ]


def double_discard(rng: random.Random) -> List[Instruction]:
    return [
        Instruction.push(_small(rng)),
        Instruction(Opcode.DUP),
        Instruction(Opcode.ADD),
        Instruction(Opcode.DEL),
    ]


def divide_multiply_discard(rng: random.Random) -> List[Instruction]:
    # Divisors are drawn from [3, 9] so the division can never fault.
    return [
        Instruction.push(_nonzero(rng)),
        Instruction.push(_nonzero(rng)),
        Instruction(Opcode.DIV),
        Instruction.push(_nonzero(rng)),
        Instruction(Opcode.MULT),
        Instruction(Opcode.DEL),
    ]


def square_scale_discard(rng: random.Random) -> List[Instruction]:
    return [
        Instruction.push(_small(rng)),
        Instruction(Opcode.DUP),
        Instruction(Opcode.MULT),
        Instruction.push(_nonzero(rng)),
        Instruction(Opcode.MULT),
        Instruction(Opcode.DEL),
    ]


def lone_nop(rng: random.Random) -> List[Instruction]:
    return [NOP]


@dataclass(frozen=True)
class DeadCodePattern:
    name: str
    generate: DeadCodeGenerator
    quantity: int


DEFAULT_PATTERNS: Tuple[DeadCodePattern, ...] = (
    DeadCodePattern("push-discard", push_discard, 200),
    DeadCodePattern("add-discard", add_discard, 200),
    DeadCodePattern("sub-discard", sub_discard, 200),
    DeadCodePattern("double-discard", double_discard, 200),
    DeadCodePattern("divide-multiply-discard", divide_multiply_discard, 20),
    DeadCodePattern("square-scale-discard", square_scale_discard, 20),
    DeadCodePattern("nop", lone_nop, 100),
)


# ═══════════════════════════════════════════════════════════════════
#  Configuration
# ═══════════════════════════════════════════════════════════════════

@dataclass
class ObfuscationConfig:
    """Knobs for :class:`Obfuscator`.

    Ratios are ``(numerator, denominator)`` chances evaluated once per
    rendered line.
    """

    padding_rounds: int = 100
    padding_per_round: Tuple[int, int] = (1, 3)
    patterns: Tuple[DeadCodePattern, ...] = DEFAULT_PATTERNS
    trailing_space_ratio: Tuple[int, int] = (1, 50)
    indent_space_ratio: Tuple[int, int] = (1, 20)
    indent_tab_ratio: Tuple[int, int] = (1, 20)
    dedent_ratio: Tuple[int, int] = (1, 8)
    output_path: Optional[str] = DEFAULT_OUTPUT_PATH

    def scaled(self, factor: float) -> ObfuscationConfig:
        """Copy with padding rounds and pattern quantities multiplied by *factor*."""
        return replace(
            self,
            padding_rounds=int(self.padding_rounds * factor),
            patterns=tuple(
                replace(p, quantity=int(p.quantity * factor)) for p in self.patterns
            ),
        )


def _chance(rng: random.Random, ratio: Tuple[int, int]) -> bool:
    numerator, denominator = ratio
    return rng.randrange(denominator) < numerator


def _random_position(rng: random.Random, instructions: List[Instruction]) -> int:
    # Insertion always lands before an existing instruction, never after the last.
    if not instructions:
        return 0
    return rng.randrange(len(instructions))


# ═══════════════════════════════════════════════════════════════════
#  Pipeline
# ═══════════════════════════════════════════════════════════════════

class Obfuscator:
    """Applies the obfuscation pipeline with an injected random source."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        config: Optional[ObfuscationConfig] = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.config = config or ObfuscationConfig()

    # -- individual steps -----------------------------------------------

    @staticmethod
    def strip_nops(instructions: List[Instruction]) -> List[Instruction]:
        return [instr for instr in instructions if not instr.is_nop]

    def pad(self, instructions: List[Instruction]) -> List[Instruction]:
        lo, hi = self.config.padding_per_round
        for _ in range(self.config.padding_rounds):
            for _ in range(self.rng.randint(lo, hi)):
                instructions.insert(_random_position(self.rng, instructions), NOP)
        return instructions

    def insert_dead_code(
        self,
        instructions: List[Instruction],
        pattern: DeadCodePattern,
    ) -> List[Instruction]:
        for _ in range(pattern.quantity):
            index = _random_position(self.rng, instructions)
            instructions[index:index] = pattern.generate(self.rng)
        return instructions

    @staticmethod
    def resolve_labels(instructions: List[Instruction]) -> List[Instruction]:
        """Rewrite ``push <label>`` as ``push <address>`` using a fresh index."""
        labels = index_labels(instructions)
        resolved: List[Instruction] = []
        for instr in instructions:
            if instr.is_label_ref:
                address = labels.get(instr.operand)  # type: ignore[arg-type]
                if address is None:
                    raise UnresolvedLabelError(instr.operand)  # type: ignore[arg-type]
                instr = Instruction.push(address)
            resolved.append(instr)
        return resolved

    @staticmethod
    def erase_labels(instructions: List[Instruction]) -> List[Instruction]:
        return [NOP if instr.is_label else instr for instr in instructions]

    def render(self, program: Program) -> str:
        """Render one instruction per line with random whitespace noise."""
        cfg = self.config
        indent: List[str] = []
        lines: List[str] = []
        for instr in program.instructions:
            line = "".join(indent) + instr.render()
            if _chance(self.rng, cfg.trailing_space_ratio):
                line += " "
            if _chance(self.rng, cfg.indent_space_ratio):
                indent.append(" ")
            if _chance(self.rng, cfg.indent_tab_ratio):
                indent.append("\t")
            if _chance(self.rng, cfg.dedent_ratio) and indent:
                indent.pop()
            lines.append(line + "\n")
        return "".join(lines)

    # -- whole pipeline -------------------------------------------------

    def transform(self, program: Program) -> Program:
        """Steps 1-6: returns a new, label-free program."""
        instructions = self.strip_nops(program.instructions)
        logger.debug("stripped to %d instructions", len(instructions))

        instructions = self.pad(instructions)
        for pattern in self.config.patterns:
            instructions = self.insert_dead_code(instructions, pattern)
            logger.debug("after %s: %d instructions", pattern.name, len(instructions))

        instructions = self.resolve_labels(instructions)
        instructions = self.erase_labels(instructions)
        result = Program.from_instructions(instructions)
        logger.info("obfuscated %d -> %d instructions", len(program), len(result))
        return result

    def obfuscate(self, program: Program) -> bytes:
        return self.render(self.transform(program)).encode("utf-8")

    def write(
        self,
        program: Program,
        output_path: Union[str, Path, None] = None,
    ) -> bytes:
        """Obfuscate *program* and write it to *output_path*.

        Falls back to ``config.output_path``; if both are ``None`` nothing is
        written.
        """
        data = self.obfuscate(program)
        path = output_path if output_path is not None else self.config.output_path
        if path is not None:
            Path(path).write_bytes(data)
            logger.info("wrote obfuscated program to %s (%d bytes)", path, len(data))
        return data


def obfuscate(
    program: Program,
    rng: Optional[random.Random] = None,
    config: Optional[ObfuscationConfig] = None,
    output_path: Union[str, Path, None] = None,
) -> bytes:
    """Obfuscate *program*, write it out, and return the written bytes.

    *output_path* overrides ``config.output_path`` (default
    ``fuxxor.mxc``).  Pass a config with ``output_path=None`` to skip writing.
    """
    return Obfuscator(rng=rng, config=config).write(program, output_path)


__all__ = [
    "DEFAULT_OUTPUT_PATH",
    "DeadCodePattern",
    "DEFAULT_PATTERNS",
    "push_discard",
    "add_discard",
    "sub_discard",
    "double_discard",
    "divide_multiply_discard",
    "square_scale_discard",
    "lone_nop",
    "ObfuscationConfig",
    "Obfuscator",
    "obfuscate",
]
