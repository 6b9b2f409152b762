import argparse
import logging
import sys
from collections.abc import Sequence

from expr import TypedEntry, program_repr, tprogram_repr, type_repr
from infer import InferError, infer_program, unsatisfied_constraints
from parser import ParseError, parse

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="letpoly", description="Infer types for a small ML-style language")
    parser.add_argument("file", help="Source file to check, or '-' to read standard input.")
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="WARNING")
    parser.add_argument("-v", "--verbose", action="store_true", help="Shortcut for --log-level DEBUG.")
    parser.add_argument("--ast", action="store_true", help="Print the parsed program before inference.")
    parser.add_argument("--annotate", action="store_true", help="Print every node with its type.")
    parser.add_argument("--check", action="store_true", help="Verify each typed entry against its own constraints.")
    return parser

def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

def read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, encoding="utf-8") as f:
        return f.read()

def check_entries(entries: list[TypedEntry]) -> list[str]:
    problems = []
    for entry in entries:
        for left, right in unsatisfied_constraints(entry.expr):
            names: dict[str, str] = {}
            problems.append(f"constraint not satisfied: {type_repr(left, names)} = {type_repr(right, names)}")
    return problems

def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    configure_logging("DEBUG" if args.verbose else args.log_level)

    try:
        code = read_source(args.file)
        program = parse(code)
        if args.ast:
            print(program_repr(program))
        typed = infer_program(program)
        logger.info("inferred %d entries from %s", len(typed), args.file)
        problems = check_entries(typed) if args.check else []
        output = tprogram_repr(typed, annotate=args.annotate)
    except (OSError, ParseError, InferError) as e:
        logger.debug("checking %s failed", args.file, exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except RecursionError:
        print("error: expression nested too deeply", file=sys.stderr)
        return 1

    if problems:
        for problem in problems:
            print(f"error: {problem}", file=sys.stderr)
        return 1
    print(output)
    return 0

if __name__ == "__main__":
    sys.exit(main())
