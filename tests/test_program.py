# tests/test_program.py
"""
Tests for the instruction set and program model.
"""

import pytest

from tapevm.program import (
    MNEMONICS,
    NOP,
    Instruction,
    Opcode,
    Program,
    index_labels,
)


class TestOpcode:

    def test_mnemonics_cover_every_executable_opcode(self):
        assert len(MNEMONICS) == 20
        assert MNEMONICS["jmpc"] is Opcode.JMPC
        assert MNEMONICS["del"] is Opcode.DEL

    def test_structural_markers_are_not_mnemonics(self):
        assert Opcode.LABEL.value not in MNEMONICS
        assert Opcode.NOP.value not in MNEMONICS
        assert Opcode.LABEL.is_structural
        assert not Opcode.PUSH.is_structural


class TestInstruction:

    def test_render_plain(self):
        assert Instruction(Opcode.MULT).render() == "mult"
        assert str(Instruction(Opcode.PUSHT)) == "pusht"

    def test_render_push_constant(self):
        assert Instruction.push(-12).render() == "push -12"

    def test_render_push_label(self):
        assert Instruction.push("loop").render() == "push loop"

    def test_render_label(self):
        assert Instruction.label("loop").render() == "loop:"

    def test_render_nop_is_empty(self):
        assert NOP.render() == ""

    def test_empty_label_rejected(self):
        with pytest.raises(ValueError):
            Instruction.label("")

    def test_classification(self):
        assert Instruction.push("x").is_label_ref
        assert not Instruction.push(3).is_label_ref
        assert Instruction.label("x").is_label
        assert NOP.is_nop

    def test_equality_and_hashing(self):
        assert Instruction.push(1) == Instruction(Opcode.PUSH, 1)
        assert len({Instruction.push(1), Instruction.push(1), NOP}) == 2

    def test_repr(self):
        assert repr(Instruction(Opcode.PRINT)) == "Instruction(PRINT)"
        assert repr(Instruction.push(5)) == "Instruction(PUSH, 5)"


class TestProgram:

    def test_labels_indexed_by_position(self):
        program = Program.from_instructions([
            NOP,
            Instruction.label("a"),
            Instruction(Opcode.DUP),
            Instruction.label("b"),
        ])
        assert program.labels == {"a": 1, "b": 3}
        assert program.resolve("b") == 3
        assert program.resolve("missing") is None

    def test_duplicate_label_last_wins(self):
        labels = index_labels([
            Instruction.label("x"),
            NOP,
            Instruction.label("x"),
        ])
        assert labels == {"x": 2}

    def test_reindex_after_edit(self):
        program = Program.from_instructions([Instruction.label("a")])
        program.instructions.insert(0, NOP)
        assert program.labels == {"a": 0}
        program.reindex()
        assert program.labels == {"a": 1}

    def test_render_one_line_per_instruction(self):
        program = Program.from_instructions([
            Instruction.push(3),
            NOP,
            Instruction.label("end"),
            Instruction(Opcode.POP),
        ])
        assert program.render() == "push 3\n\nend:\npop\n"

    def test_len_and_getitem(self):
        program = Program.from_instructions([NOP, Instruction(Opcode.READ)])
        assert len(program) == 2
        assert program[1].opcode is Opcode.READ
