"""tapevm/parser.py – assembly text → :class:`~tapevm.program.Program`.

Source format
-------------
One instruction per line.  Each line is trimmed and lowercased before it is
matched, so mnemonics and label names are case-insensitive::

    # comments start with '#', '//' or ';'
    push 3
    pop
    loop:              ; a label declaration
    pusht
    push loop          ; push the address of 'loop'
    jmpc

* Blank and comment lines become ``NOP`` and still occupy an address.
* The first token is the mnemonic; the second token, if any, is its
  argument.  Anything after that is ignored.
* ``push`` takes a signed decimal literal or, failing that, a label name.
* A first token that is not a mnemonic must end with ``:`` and declares a
  label at the line's address.  Anything else is a fatal
  :class:`~tapevm.errors.UnknownMnemonicError`.

Each line is matched against a small PEG grammar (``parsimonious``); the
resulting tree is folded by :class:`LineVisitor` and then assembled into an
:class:`~tapevm.program.Instruction`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, NamedTuple, Optional, Union

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import Node, NodeVisitor

from tapevm.errors import (
    AssemblyError,
    EmptyLabelError,
    MissingOperandError,
    TapeVMErrorCodes,
    UnknownMnemonicError,
)
from tapevm.program import MNEMONICS, NOP, Instruction, Opcode, Program

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
#  Grammar
# ═══════════════════════════════════════════════════════════════════════

LINE_GRAMMAR = Grammar(r'''
    line        = comment / statement / blank

    comment     = ~r"(#|//|;).*"
    statement   = mnemonic operand? trailing
    operand     = ws (integer / symbol)
    trailing    = ~r".*"

    mnemonic    = ~r"\S+"
    integer     = ~r"[+-]?[0-9]+(?!\S)"
    symbol      = ~r"\S+"
    ws          = ~r"\s+"
    blank       = ""
''')


class Statement(NamedTuple):
    """A non-comment line split into its parts."""

    mnemonic: str
    argument: Union[int, str, None]
    trailing: str


class LineVisitor(NodeVisitor):
    """Folds a ``LINE_GRAMMAR`` parse tree into ``NOP`` or a :class:`Statement`."""

    grammar = LINE_GRAMMAR

    def visit_line(self, node: Node, visited_children: List[Any]) -> Any:
        return visited_children[0]

    def visit_comment(self, node: Node, visited_children: List[Any]) -> Instruction:
        return NOP

    def visit_blank(self, node: Node, visited_children: List[Any]) -> Instruction:
        return NOP

    def visit_statement(self, node: Node, visited_children: List[Any]) -> Statement:
        mnemonic, operand, trailing = visited_children
        # An unmatched optional visits to its bare node.
        argument = operand[0] if isinstance(operand, list) else None
        return Statement(mnemonic, argument, trailing)

    def visit_operand(self, node: Node, visited_children: List[Any]) -> Union[int, str]:
        _, (value,) = visited_children
        return value

    def visit_mnemonic(self, node: Node, visited_children: List[Any]) -> str:
        return node.text

    def visit_integer(self, node: Node, visited_children: List[Any]) -> int:
        return int(node.text)

    def visit_symbol(self, node: Node, visited_children: List[Any]) -> str:
        return node.text

    def visit_trailing(self, node: Node, visited_children: List[Any]) -> str:
        return node.text.strip()

    def generic_visit(self, node: Node, visited_children: List[Any]) -> Any:
        return visited_children or node


# ═══════════════════════════════════════════════════════════════════════
#  Assembly
# ═══════════════════════════════════════════════════════════════════════

def _split_lines(text: str) -> List[str]:
    """Split on ``\\n`` only; a trailing newline does not start a new line."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _assemble(stmt: Statement, line_number: int, line: str) -> Instruction:
    opcode = MNEMONICS.get(stmt.mnemonic)

    if opcode is None:
        if not stmt.mnemonic.endswith(":"):
            raise UnknownMnemonicError(stmt.mnemonic, line_number, line)
        name = stmt.mnemonic.split(":", 1)[0]
        if not name:
            raise EmptyLabelError(line_number, line)
        if stmt.argument is not None:
            logger.debug("line %d: ignoring text after label %r", line_number, name)
        return Instruction.label(name)

    if opcode is Opcode.PUSH:
        if stmt.argument is None:
            raise MissingOperandError(stmt.mnemonic, line_number, line)
        instr = Instruction.push(stmt.argument)
    else:
        instr = Instruction(opcode)
        if stmt.argument is not None:
            logger.debug("line %d: %s takes no operand; ignoring %r",
                         line_number, opcode.value, stmt.argument)

    if stmt.trailing:
        logger.debug("line %d: ignoring trailing tokens %r", line_number, stmt.trailing)
    return instr


def parse_line(line: str, line_number: int = 1) -> Instruction:
    """Parse a single source line (without its newline)."""
    text = line.strip().lower()
    try:
        result = LineVisitor().parse(text)
    except ParseError as exc:
        raise AssemblyError(
            f"malformed line: {exc}",
            line_number,
            line,
            code=TapeVMErrorCodes.MALFORMED_LINE,
        ) from exc
    if isinstance(result, Statement):
        return _assemble(result, line_number, text)
    return result


def parse(text: str) -> Program:
    """Parse a whole source text.

    Every line produces exactly one instruction, so an instruction's index
    in the result is the source line number minus one.
    """
    instructions = [
        parse_line(line, number)
        for number, line in enumerate(_split_lines(text), start=1)
    ]
    program = Program.from_instructions(instructions)
    logger.debug("parsed %d lines, %d labels", len(program), len(program.labels))
    return program


def parse_file(path: Union[str, Path], encoding: Optional[str] = "utf-8") -> Program:
    """Read *path* in full and parse it."""
    source = Path(path).read_text(encoding=encoding)
    return parse(source)


__all__ = [
    "LINE_GRAMMAR",
    "Statement",
    "LineVisitor",
    "parse_line",
    "parse",
    "parse_file",
]
