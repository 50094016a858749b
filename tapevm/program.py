"""
tapevm/program.py
═════════════════

Instruction set and program model.

The instruction set is closed: :class:`Opcode` enumerates every operation the
machine knows, and its values *are* the canonical lowercase mnemonics.  The
parser looks mnemonics up in :data:`MNEMONICS`, and :meth:`Instruction.render`
writes them back out, so the two directions cannot drift apart.

Instruction forms
─────────────────

  Form                      Rendering        Meaning
  ────────────────────────  ───────────────  ──────────────────────────────
  Instruction(LEFT)         left             tape head -= 1
  Instruction(RIGHT)        right            tape head += 1
  Instruction(PUSHT)        pusht            push tape[head]
  Instruction(PUSH, 7)      push 7           push a constant
  Instruction(PUSH, "lbl")  push lbl         push a label's address
  Instruction(POP)          pop              tape[head] <- pop
  Instruction(DUP)          dup              push copy of top
  Instruction(DEL)          del              discard top
  Instruction(EQ/GT/LT)     eq / gt / lt     comparisons, push 1 or 0
  Instruction(NOT)          not              logical negation
  Instruction(ADD...MOD)    add ... mod      integer arithmetic
  Instruction(READ)         read             push one input byte
  Instruction(PRINT)        print            emit low byte of top
  Instruction(JMP)          jmp              jump to popped address
  Instruction(JMPC)         jmpc             conditional jump
  Instruction(LABEL, "l")   l:               label declaration (no-op)
  Instruction(NOP)          <empty>          blank line / comment

A :class:`Program` pairs the instruction list with a label table.  The table
is an index over the list, never independent state: it is always rebuilt by
scanning (:meth:`Program.reindex`).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

Operand = Union[int, str, None]


class Opcode(enum.Enum):
    """Every instruction the machine can execute."""

    LEFT = "left"
    RIGHT = "right"
    PUSHT = "pusht"
    PUSH = "push"
    POP = "pop"
    DUP = "dup"
    DEL = "del"
    EQ = "eq"
    NOT = "not"
    GT = "gt"
    LT = "lt"
    ADD = "add"
    SUB = "sub"
    MULT = "mult"
    DIV = "div"
    MOD = "mod"
    READ = "read"
    PRINT = "print"
    JMP = "jmp"
    JMPC = "jmpc"

    # Structural markers.  Their values can never be a source token.
    LABEL = ":"
    NOP = ""

    @property
    def is_structural(self) -> bool:
        return self in (Opcode.LABEL, Opcode.NOP)


#: mnemonic -> opcode, for everything that may appear as a source token.
MNEMONICS: Dict[str, Opcode] = {
    op.value: op for op in Opcode if not op.is_structural
}


@dataclass(frozen=True, slots=True)
class Instruction:
    """One line of a program.

    ``operand`` is an ``int`` for constant pushes, a ``str`` for label
    pushes and label declarations, and ``None`` otherwise.
    """

    opcode: Opcode
    operand: Operand = None

    # -- constructors ------------------------------------------------------

    @classmethod
    def push(cls, value: Union[int, str]) -> Instruction:
        return cls(Opcode.PUSH, value)

    @classmethod
    def label(cls, name: str) -> Instruction:
        if not name:
            raise ValueError("label names must be non-empty")
        return cls(Opcode.LABEL, name)

    # -- classification ----------------------------------------------------

    @property
    def is_nop(self) -> bool:
        return self.opcode is Opcode.NOP

    @property
    def is_label(self) -> bool:
        return self.opcode is Opcode.LABEL

    @property
    def is_label_ref(self) -> bool:
        """True for ``push <name>`` (an unresolved label reference)."""
        return self.opcode is Opcode.PUSH and isinstance(self.operand, str)

    # -- rendering ---------------------------------------------------------

    def render(self) -> str:
        """Canonical source text for this instruction."""
        if self.opcode is Opcode.LABEL:
            return f"{self.operand}:"
        if self.opcode is Opcode.PUSH:
            return f"push {self.operand}"
        return self.opcode.value

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        if self.operand is None:
            return f"Instruction({self.opcode.name})"
        return f"Instruction({self.opcode.name}, {self.operand!r})"


NOP = Instruction(Opcode.NOP)


def index_labels(instructions: Iterable[Instruction]) -> Dict[str, int]:
    """Map every declared label to its position.  Later declarations win."""
    labels: Dict[str, int] = {}
    for position, instr in enumerate(instructions):
        if instr.is_label:
            labels[instr.operand] = position  # type: ignore[index]
    return labels


@dataclass
class Program:
    """An instruction sequence plus its label index."""

    instructions: List[Instruction] = field(default_factory=list)
    labels: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_instructions(cls, instructions: Iterable[Instruction]) -> Program:
        seq = list(instructions)
        return cls(instructions=seq, labels=index_labels(seq))

    def reindex(self) -> None:
        """Recompute the label table from the instruction sequence."""
        self.labels = index_labels(self.instructions)

    def resolve(self, name: str) -> Optional[int]:
        return self.labels.get(name)

    def render(self) -> str:
        """One instruction per line, newline-terminated."""
        return "".join(instr.render() + "\n" for instr in self.instructions)

    def __len__(self) -> int:
        return len(self.instructions)

    def __getitem__(self, position: int) -> Instruction:
        return self.instructions[position]


__all__ = [
    "Opcode",
    "MNEMONICS",
    "Instruction",
    "NOP",
    "Operand",
    "index_labels",
    "Program",
]
