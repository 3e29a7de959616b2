"""
plxml - Main Entry Point
Runs programs written as XML-shaped markup
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional

from error_handling import PlxmlParseError, PlxmlRuntimeError, PlxmlSemanticsError
from interpreter import DEFAULT_MAX_CALL_DEPTH, create_interpreter
from parsing import create_debug_parser, create_parser, pretty_print_cst
from semantics import create_analyzer, create_debug_analyzer, pretty_print_program

VERSION = "plxml v0.3.0"

# Python frames used per plxml call, with headroom for nested expressions
FRAMES_PER_CALL = 24


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='plxml',
      description='plxml - a small imperative language written as markup',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s program.xml a b          # Run a program with two arguments
  %(prog)s --parse program.xml      # Parse and show the markup tree
  %(prog)s --analyze program.xml    # Parse, analyze and show the instructions
  %(prog)s --debug program.xml      # Run with trace output on stderr
        """
  )

  parser.add_argument(
      'script',
      help='plxml program to execute'
  )

  parser.add_argument(
      'args',
      nargs=argparse.REMAINDER,
      help='arguments passed to the program (see get-args)'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show the markup tree'
  )

  parser.add_argument(
      '--analyze',
      action='store_true',
      help='Parse and analyze file, show the instruction tree'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--short-circuit-loops',
      action='store_true',
      help='Stop for/each loops as soon as a return is pending'
  )

  parser.add_argument(
      '--max-call-depth',
      type=int,
      default=DEFAULT_MAX_CALL_DEPTH,
      help=f'Maximum nesting of user function calls (default {DEFAULT_MAX_CALL_DEPTH})'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def source_line(span) -> Optional[str]:
  """Text of the first line a span covers, when the file is readable"""
  if span is None:
    return None
  try:
    lines = Path(span.filename).read_text(encoding='utf-8').split('\n')
  except (OSError, UnicodeDecodeError):
    return None
  if 1 <= span.start_line <= len(lines):
    return lines[span.start_line - 1].strip()
  return None


def report_error(kind: str, script_path: str, error: Exception) -> None:
  print(f"{kind} in '{script_path}': {error}", file=sys.stderr)
  span = getattr(error, 'span', None)
  if span is not None:
    print(f"  Location: {span}", file=sys.stderr)
    line = source_line(span)
    if line:
      print(f"  Source: {line}", file=sys.stderr)


def parse_file(script_path: str, debug: bool = False) -> None:
  """Parse a plxml file and show the markup tree"""
  parser = create_debug_parser() if debug else create_parser()
  root = parser.parse_file(script_path)
  print(pretty_print_cst(root), end='')


def analyze_file(script_path: str, debug: bool = False) -> None:
  """Parse and analyze a plxml file and show the instruction tree"""
  parser = create_debug_parser() if debug else create_parser()
  analyzer = create_debug_analyzer() if debug else create_analyzer()
  program = analyzer.analyze(parser.parse_file(script_path))
  print(pretty_print_program(program), end='')


def run_script_file(script_path: str, args: List[str], debug: bool = False,
                    short_circuit_loops: bool = False,
                    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH) -> None:
  """Run a plxml program with full interpretation"""
  parser = create_debug_parser() if debug else create_parser()
  analyzer = create_debug_analyzer() if debug else create_analyzer()
  interpreter = create_interpreter(debug, short_circuit_loops, max_call_depth)

  if debug:
    print(f"DEBUG: parsing {script_path}", file=sys.stderr)
  program = analyzer.analyze(parser.parse_file(script_path))
  interpreter.run(program, [script_path] + list(args))


def main(argv: Optional[List[str]] = None) -> int:
  """Main entry point for plxml"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  if args.max_call_depth < 1:
    arg_parser.error("--max-call-depth must be at least 1")

  if not Path(args.script).exists():
    print(f"Error: Script file '{args.script}' does not exist", file=sys.stderr)
    print("  Hint: Check the file path and make sure the file exists", file=sys.stderr)
    return 1

  sys.setrecursionlimit(max(sys.getrecursionlimit(),
                            args.max_call_depth * FRAMES_PER_CALL + 1000))

  try:
    if args.parse:
      parse_file(args.script, debug=args.debug)
    elif args.analyze:
      analyze_file(args.script, debug=args.debug)
    else:
      run_script_file(args.script, args.args, args.debug,
                      args.short_circuit_loops, args.max_call_depth)
  except PlxmlParseError as e:
    print(f"Parse error in '{args.script}':", file=sys.stderr)
    print(str(e), file=sys.stderr)
    return 1
  except PlxmlSemanticsError as e:
    report_error("Semantic analysis error", args.script, e)
    return 1
  except PlxmlRuntimeError as e:
    report_error("Runtime error", args.script, e)
    return 1
  except KeyboardInterrupt:
    print("\nInterrupted", file=sys.stderr)
    return 1

  return 0


if __name__ == "__main__":
  sys.exit(main())
