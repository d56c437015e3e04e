import argparse
import logging
import sys
from pathlib import Path

from tinyjs.tinyjs_runtime import Context
from tinyjs.tinyjs_printer import Printer
from tinyjs.tinyjs_serialize import serialize


def format_value(value, fmt=None, printer=None) -> str:
    """Renders a result in display form, or as JSON/YAML when a format is chosen."""
    if fmt is not None:
        return serialize(value, fmt=fmt, indent=2 if fmt == 'json' else None).rstrip("\n")
    return (printer or Printer()).pformat(value)


def print_effects(result):
    for effect in result.side_effects:
        if effect.get('topics') == ['stdout']:
            print(effect.get('message', ''))


def run_source(source: str, *, verbose: bool = False, fmt=None):
    """Evaluate one program non-interactively and exit with appropriate status."""
    context = Context(verbose=verbose)
    result = context.run(source)
    print_effects(result)
    if result.status == 'error':
        print(f"Error: {result.format_error()}", file=sys.stderr)
        raise SystemExit(1)
    print(format_value(result.value, fmt))


def repl(*, verbose: bool = False, fmt=None):
    """Interactive loop over one persistent Context."""
    print("tinyjs REPL v0.1")
    print("Type '.exit' or press Ctrl+D to quit.")

    context = Context(verbose=verbose)
    printer = Printer()
    while True:
        try:
            line = input("> ").strip()
        except EOFError:
            print("\nExiting.")
            break

        if not line:
            continue
        if line == ".exit":
            break

        result = context.run(line)
        print_effects(result)
        if result.status == 'error':
            print(f"Error: {result.format_error()}", file=sys.stderr)
            continue
        print(format_value(result.value, fmt, printer))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="python js.py", description="Run tinyjs source, or start the REPL")
    p.add_argument("-v", dest="verbose", action="store_true", help="Log source text, tokens and AST")
    formats = p.add_mutually_exclusive_group()
    formats.add_argument("--yaml", dest="fmt", action="store_const", const="yaml", help="Print results as YAML")
    formats.add_argument("--json", dest="fmt", action="store_const", const="json", help="Print results as JSON")
    p.add_argument("-e", dest="source", metavar="SOURCE", help="Evaluate SOURCE instead of a file")
    p.add_argument("file", nargs="?", help="Script file to run")
    return p


def main(argv=None):
    """Run a script file or `-e` source text when provided, otherwise start the REPL."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    source = args.source
    if args.file is not None and source is None:
        try:
            source = Path(args.file).read_text(encoding="utf-8")
        except FileNotFoundError:
            print(f"Error: file not found: {args.file}", file=sys.stderr)
            raise SystemExit(1)
    if source is not None:
        run_source(source, verbose=args.verbose, fmt=args.fmt)
        return
    repl(verbose=args.verbose, fmt=args.fmt)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")
