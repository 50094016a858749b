# tests/test_parser.py
"""
Tests for the line-oriented assembler.
"""

import pytest

from tapevm.errors import (
    AssemblyError,
    EmptyLabelError,
    ErrorPhase,
    MissingOperandError,
    UnknownMnemonicError,
)
from tapevm.parser import LineVisitor, Statement, parse, parse_file, parse_line
from tapevm.program import NOP, Instruction, Opcode
from tests.conftest import COUNTDOWN_SRC, NOISY_SRC


class TestLineVisitor:

    def test_statement_with_integer(self):
        stmt = LineVisitor().parse("push -5")
        assert stmt == Statement("push", -5, "")

    def test_statement_with_symbol(self):
        stmt = LineVisitor().parse("push loop")
        assert stmt == Statement("push", "loop", "")

    def test_statement_without_operand(self):
        stmt = LineVisitor().parse("dup")
        assert stmt == Statement("dup", None, "")

    def test_trailing_text_collected(self):
        stmt = LineVisitor().parse("push 1 2 3")
        assert stmt == Statement("push", 1, "2 3")

    def test_digits_followed_by_letters_are_a_symbol(self):
        stmt = LineVisitor().parse("push 12ab")
        assert stmt.argument == "12ab"

    def test_comment_and_blank(self):
        assert LineVisitor().parse("; hello") is NOP
        assert LineVisitor().parse("") is NOP


class TestParseLine:

    @pytest.mark.parametrize("line", ["", "   ", "\t", "# c", "// c", "; c", "#"])
    def test_blank_and_comment_lines_are_nops(self, line):
        assert parse_line(line) == NOP

    @pytest.mark.parametrize("mnemonic,opcode", [
        ("left", Opcode.LEFT),
        ("right", Opcode.RIGHT),
        ("pusht", Opcode.PUSHT),
        ("pop", Opcode.POP),
        ("dup", Opcode.DUP),
        ("del", Opcode.DEL),
        ("eq", Opcode.EQ),
        ("not", Opcode.NOT),
        ("gt", Opcode.GT),
        ("lt", Opcode.LT),
        ("add", Opcode.ADD),
        ("sub", Opcode.SUB),
        ("mult", Opcode.MULT),
        ("div", Opcode.DIV),
        ("mod", Opcode.MOD),
        ("read", Opcode.READ),
        ("print", Opcode.PRINT),
        ("jmp", Opcode.JMP),
        ("jmpc", Opcode.JMPC),
    ])
    def test_plain_mnemonics(self, mnemonic, opcode):
        assert parse_line(mnemonic) == Instruction(opcode)

    def test_case_insensitive(self):
        assert parse_line("  PrInT  ") == Instruction(Opcode.PRINT)

    def test_push_integer(self):
        assert parse_line("push 42") == Instruction.push(42)
        assert parse_line("push -7") == Instruction.push(-7)
        assert parse_line("push +3") == Instruction.push(3)

    def test_push_label_lowercased(self):
        assert parse_line("push Loop") == Instruction.push("loop")

    def test_label_declaration(self):
        assert parse_line("loop:") == Instruction.label("loop")

    def test_label_name_stops_at_first_colon(self):
        assert parse_line("a:b:") == Instruction.label("a")

    def test_extra_tokens_ignored(self):
        assert parse_line("pop 1 2") == Instruction(Opcode.POP)
        assert parse_line("loop: pop") == Instruction.label("loop")

    def test_inline_comment_after_instruction_ignored(self):
        assert parse_line("dup ; duplicate") == Instruction(Opcode.DUP)

    def test_unknown_mnemonic(self):
        with pytest.raises(UnknownMnemonicError) as info:
            parse_line("jump", line_number=4)
        assert info.value.line_number == 4
        assert info.value.mnemonic == "jump"
        assert info.value.phase is ErrorPhase.PARSE
        assert "TVM-1000" in str(info.value)

    def test_bare_push_needs_operand(self):
        with pytest.raises(MissingOperandError):
            parse_line("push")

    def test_empty_label_name(self):
        with pytest.raises(EmptyLabelError):
            parse_line(":")

    def test_assembly_errors_share_a_base(self):
        with pytest.raises(AssemblyError):
            parse_line("bogus")


class TestParse:

    def test_one_instruction_per_line(self):
        program = parse("push 1\n\n# note\npop\n")
        assert len(program) == 4
        assert program[1] == NOP
        assert program[2] == NOP
        assert program[3] == Instruction(Opcode.POP)

    def test_trailing_newline_does_not_add_a_line(self):
        assert len(parse("dup\n")) == 1
        assert len(parse("dup")) == 1

    def test_empty_source(self):
        assert len(parse("")) == 0

    def test_crlf_line_endings(self):
        program = parse("push 1\r\npop\r\n")
        assert program.instructions == [Instruction.push(1), Instruction(Opcode.POP)]

    def test_labels_indexed(self):
        program = parse(COUNTDOWN_SRC)
        assert program.labels == {"loop": 2}
        assert len(program) == 14

    def test_noisy_source_labels(self):
        program = parse(NOISY_SRC)
        assert program.labels == {"loop": 5}
        assert program[0] == NOP

    def test_error_reports_source_line(self):
        with pytest.raises(UnknownMnemonicError) as info:
            parse("push 1\npop\nfrobnicate\n")
        assert info.value.line_number == 3

    def test_parse_file(self, tmp_path):
        path = tmp_path / "prog.mxc"
        path.write_text(COUNTDOWN_SRC, encoding="utf-8")
        assert parse_file(path).instructions == parse(COUNTDOWN_SRC).instructions


class TestRenderRoundTrip:

    @pytest.mark.parametrize("src", [COUNTDOWN_SRC, NOISY_SRC])
    def test_render_then_parse_is_stable(self, src):
        program = parse(src)
        reparsed = parse(program.render())
        assert reparsed.instructions == program.instructions
        assert reparsed.labels == program.labels
