"""jspyc - command line front end

Usage examples:
  jspyc examples/factorial.js
  jspyc input.js -o out.py
  python -m jspyc input.js --emit ir
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from jspyc.ast_nodes import print_ast
from jspyc.compiler import Compiler

EMIT_CHOICES = ("python", "tokens", "ast", "symbols", "ir", "json")


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else os.environ.get("JSPYC_LOG_LEVEL", "WARNING")
    level = getattr(logging, level_name.upper(), logging.WARNING)
    logging.basicConfig(format='%(levelname)s: %(message)s', level=level)


def _render(result, emit: str) -> str:
    if emit == "json":
        return json.dumps(result.to_dict(), indent=2)
    if emit == "tokens":
        return "\n".join(repr(t) for t in result.tokens)
    if emit == "ast":
        return print_ast(result.ast).rstrip("\n")
    if emit == "symbols":
        return json.dumps(result.symbol_table.to_list(), indent=2)
    if emit == "ir":
        return "\n".join(str(ins) for ins in result.intermediate_code)
    return result.code.rstrip("\n")


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    ap = argparse.ArgumentParser(prog="jspyc", description="Script-to-Python compiler")
    ap.add_argument("source", help="Input script file")
    ap.add_argument("-o", dest="output", required=False, help="Write generated Python to this file")
    ap.add_argument("--emit", choices=EMIT_CHOICES, default="python",
                    help="What to print (default: generated Python)")
    ap.add_argument("--lenient", action="store_true",
                    help="Keep compiling after recoverable syntax errors")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args(argv)

    _configure_logging(args.verbose)

    compiler = Compiler(strict=not args.lenient)
    result = compiler.compile_file(args.source, args.output if args.emit == "python" else None)

    if args.emit == "json":
        print(_render(result, "json"))
        return 0 if result.success else 1

    if not result.success:
        print(f"Error: {result.step}: {result.error}")
        for err in result.errors[1:]:
            print(f"Error: {err}")
        return 1

    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)

    if args.output and args.emit == "python":
        return 0
    print(_render(result, args.emit))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
