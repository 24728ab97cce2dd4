"""Command-line entry point: glyph [OPTIONS] [INPUT] [-o OUTPUT]."""

from __future__ import annotations

import json
import sys

from lark import Tree

from . import STAGES, compile
from .ast import Program, to_dict
from .errors import CompileError

USAGE: str = """\
glyph [OPTIONS] [INPUT] [-o OUTPUT]

Compile a Glyph program to JavaScript. Reads INPUT, or stdin if omitted.

Options:
  --stage STAGE       Stop after stage: parsed, analyzed, optimized, js (default)
  --no-optimize       Skip the optimizer
  -o, --output FILE   Write output to FILE instead of stdout
  --help              Show this help message
"""


def read_source(input_file: str | None) -> tuple[str, int]:
    """Read source from file or stdin. Returns (source, exit_code) where exit_code 0 means OK."""
    if input_file is not None:
        try:
            with open(input_file, "rb") as f:
                raw = f.read()
        except OSError:
            print("error: cannot open '" + input_file + "'", file=sys.stderr)
            return ("", 1)
    else:
        raw = sys.stdin.buffer.read()
    try:
        return (raw.decode("utf-8"), 0)
    except UnicodeDecodeError:
        print("error: invalid utf-8 in input", file=sys.stderr)
        return ("", 1)


def write_output(output: str, output_file: str | None) -> int:
    """Write output to file or stdout. Returns 0 on success, 1 on error."""
    if output_file is not None:
        try:
            with open(output_file, "w", encoding="utf-8") as f:
                f.write(output + "\n")
        except OSError:
            print("error: cannot write '" + output_file + "'", file=sys.stderr)
            return 1
        return 0
    print(output)
    return 0


def to_json(program: Program) -> str:
    return json.dumps(to_dict(program), indent=2)


def run_pipeline(source: str, stage: str, run_optimizer: bool) -> tuple[int, str]:
    """Run the compiler up to stage. Returns (exit_code, output)."""
    try:
        result = compile(source, stage, run_optimizer)
    except CompileError as e:
        print("error:" + str(e.line) + ":" + str(e.col) + ": " + e.msg, file=sys.stderr)
        return (1, "")
    if isinstance(result, Tree):
        return (0, result.pretty().rstrip("\n"))
    if isinstance(result, Program):
        return (0, to_json(result))
    return (0, result)


def parse_args(args: list[str]) -> tuple[str, bool, str | None, str | None]:
    """Parse command-line arguments. Returns (stage, run_optimizer, input_file, output_file)."""
    stage = "js"
    run_optimizer = True
    input_file: str | None = None
    output_file: str | None = None
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            sys.exit(0)
        elif arg == "--stage":
            if i + 1 >= len(args):
                print("error: --stage requires an argument", file=sys.stderr)
                sys.exit(2)
            stage = args[i + 1]
            i += 2
        elif arg == "-o" or arg == "--output":
            if i + 1 >= len(args):
                print("error: " + arg + " requires an argument", file=sys.stderr)
                sys.exit(2)
            output_file = args[i + 1]
            i += 2
        elif arg == "--no-optimize":
            run_optimizer = False
            i += 1
        elif arg.startswith("-"):
            print("error: unknown flag '" + arg + "'", file=sys.stderr)
            sys.exit(2)
        else:
            if input_file is not None:
                print("error: unexpected argument '" + arg + "'", file=sys.stderr)
                sys.exit(2)
            input_file = arg
            i += 1
    if stage not in STAGES:
        print("error: unknown stage '" + stage + "'", file=sys.stderr)
        sys.exit(2)
    return (stage, run_optimizer, input_file, output_file)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    if argv is None:
        argv = sys.argv[1:]
    stage, run_optimizer, input_file, output_file = parse_args(argv)
    source, err = read_source(input_file)
    if err != 0:
        return err
    if len(source.strip()) == 0:
        print("error: no input provided", file=sys.stderr)
        return 2
    exit_code, output = run_pipeline(source, stage, run_optimizer)
    if exit_code != 0:
        return exit_code
    if len(output) > 0:
        return write_output(output, output_file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
