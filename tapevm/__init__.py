"""tapevm — stack-and-tape virtual machine, assembler and obfuscator.

Submodules
----------
program
    The closed instruction set (``Opcode``, ``Instruction``) and the
    ``Program`` model with its derived label index.

parser
    Assembly text → ``Program``, one instruction per source line.

runtime
    ``MachineState``, the ``step`` transition function and the
    ``Interpreter`` driver loop.

obfuscator
    Dead-code insertion, label resolution and whitespace-noised
    re-serialisation; the output behaves exactly like the input.

errors
    ``TapeVMError`` hierarchy with structured ``TVM-NNNN`` codes.

main
    CLI entry-point with subcommands: ``run``, ``obfuscate``, ``render``.

Usage
-----
Command-line::

    python -m tapevm run program.mxc
    python -m tapevm --help

Programmatic::

    import io
    from tapevm.parser import parse
    from tapevm.runtime import run

    program = parse("push 72\\nprint\\n")
    out = io.BytesIO()
    state = run(program, stdin=io.BytesIO(), stdout=out)
"""

from __future__ import annotations

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
    "errors",
    "program",
    "parser",
    "runtime",
    "obfuscator",
    "main",
]
