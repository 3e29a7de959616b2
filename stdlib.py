"""
plxml Standard Library
Native functions injected into the root environment
Every native takes the evaluated argument list and returns a value or None
"""

from typing import Callable, Dict, List, Optional, Sequence
import sys

from error_handling import EvalTypeError, InaccessibleFile
from utilities import validate_function_args
from values import (
  INTEGER,
  LIST,
  TEXT,
  clone_value,
  format_value,
  is_truthy,
  make_integer,
  make_list,
  make_native,
  make_text,
)


# ============================================================================
# PRINT FUNCTIONS
# ============================================================================

def plxml_print(args: List[Dict]) -> Dict:
  """Print a value to stdout without a newline and return it"""
  validate_function_args("print", args, [None])
  print(format_value(args[0]), end='', flush=True)
  return clone_value(args[0])


def plxml_print_line(args: List[Dict]) -> Dict:
  """Print a value followed by a newline and return it"""
  validate_function_args("print-line", args, [None])
  print(format_value(args[0]), flush=True)
  return clone_value(args[0])


def plxml_input(args: List[Dict]) -> Dict:
  """Read one line from stdin, without its trailing newline"""
  validate_function_args("input", args, [])
  line = sys.stdin.readline()
  if line.endswith("\n"):
    line = line[:-1]
  return make_text(line)


# ============================================================================
# TEXT FUNCTIONS
# ============================================================================

def plxml_string_split(args: List[Dict]) -> Dict:
  """Split text on a delimiter, dropping the first and last pieces"""
  validate_function_args("string-split", args, [TEXT, TEXT])
  target, delimiter = args[0]['value'], args[1]['value']
  if delimiter == "":
    # empty delimiter: pieces are the characters, between two empty ends
    return make_list([make_text(char) for char in target])
  parts = target.split(delimiter)[1:-1]
  return make_list([make_text(part) for part in parts])


def plxml_to_ascii(args: List[Dict]) -> Dict:
  """Integer code 0-127 to a one-character Text"""
  validate_function_args("to-ascii", args, [INTEGER])
  code = args[0]['value']
  if not 0 <= code <= 127:
    raise EvalTypeError("to-ascii", f"{code} is not an ASCII code")
  return make_text(chr(code))


def plxml_from_ascii(args: List[Dict]) -> Dict:
  validate_function_args("from-ascii", args, [TEXT])
  text = args[0]['value']
  if len(text) != 1 or not text.isascii():
    raise EvalTypeError("from-ascii", f"expected one ASCII character, got {text!r}")
  return make_integer(ord(text))


# ============================================================================
# ARRAY FUNCTIONS
# ============================================================================

def plxml_array_set(args: List[Dict]) -> None:
  validate_function_args("array-set", args, [LIST, INTEGER, None])
  args[0]['value'].set(args[1]['value'], args[2], "array-set")
  return None


def plxml_array_push(args: List[Dict]) -> None:
  validate_function_args("array-push", args, [LIST, None])
  args[0]['value'].push(args[1], "array-push")
  return None


def plxml_array_pop(args: List[Dict]) -> Dict:
  validate_function_args("array-pop", args, [LIST])
  return args[0]['value'].pop("array-pop")


def plxml_array_get(args: List[Dict]) -> Dict:
  validate_function_args("array-get", args, [LIST, INTEGER])
  return clone_value(args[0]['value'].get(args[1]['value'], "array-get"))


def plxml_array_length(args: List[Dict]) -> Dict:
  validate_function_args("array-length", args, [LIST])
  return make_integer(len(args[0]['value']))


# ============================================================================
# FILE FUNCTIONS
# ============================================================================

def plxml_write_file(args: List[Dict]) -> None:
  """write-file(path, contents, append): truncates unless append is truthy"""
  validate_function_args("write-file", args, [TEXT, TEXT, None])
  path, contents = args[0]['value'], args[1]['value']
  mode = 'a' if is_truthy(args[2]) else 'w'
  try:
    with open(path, mode, encoding='utf-8') as f:
      f.write(contents)
  except OSError as e:
    raise InaccessibleFile(path) from e
  return None


def plxml_read_file(args: List[Dict]) -> Dict:
  validate_function_args("read-file", args, [TEXT])
  path = args[0]['value']
  try:
    with open(path, 'r', encoding='utf-8') as f:
      return make_text(f.read())
  except (OSError, UnicodeDecodeError) as e:
    raise InaccessibleFile(path) from e


def make_get_args(argv: Sequence[str]) -> Callable[[List[Dict]], Dict]:
  """get-args returns a fresh List of the script path and its arguments"""
  def plxml_get_args(args: List[Dict]) -> Dict:
    validate_function_args("get-args", args, [])
    return make_list([make_text(arg) for arg in argv])
  return plxml_get_args


# ============================================================================
# BUILT-IN FUNCTION REGISTRY
# ============================================================================

def make_builtin_function(name: str, func: Callable, type_signature: str = "") -> Dict:
  """Registry entry for a native function"""
  return {
      'name': name,
      'func': func,
      'type_signature': type_signature
  }


NATIVE_FUNCTIONS = {
    # I/O
    "print": make_builtin_function("print", plxml_print, "a -> a"),
    "print-line": make_builtin_function("print-line", plxml_print_line, "a -> a"),
    "input": make_builtin_function("input", plxml_input, "-> Text"),

    # Text
    "string-split": make_builtin_function("string-split", plxml_string_split, "Text -> Text -> List"),
    "to-ascii": make_builtin_function("to-ascii", plxml_to_ascii, "Integer -> Text"),
    "from-ascii": make_builtin_function("from-ascii", plxml_from_ascii, "Text -> Integer"),

    # Arrays
    "array-set": make_builtin_function("array-set", plxml_array_set, "List -> Integer -> a ->"),
    "array-push": make_builtin_function("array-push", plxml_array_push, "List -> a ->"),
    "array-pop": make_builtin_function("array-pop", plxml_array_pop, "List -> a"),
    "array-get": make_builtin_function("array-get", plxml_array_get, "List -> Integer -> a"),
    "array-length": make_builtin_function("array-length", plxml_array_length, "List -> Integer"),

    # Files
    "write-file": make_builtin_function("write-file", plxml_write_file, "Text -> Text -> a ->"),
    "read-file": make_builtin_function("read-file", plxml_read_file, "Text -> Text"),
}


def list_builtin_functions() -> List[str]:
  """List all available native functions, get-args included"""
  return list(NATIVE_FUNCTIONS.keys()) + ["get-args"]


def inject_all(env: Dict, argv: Optional[Sequence[str]] = None) -> Dict:
  """Bind every native into `env`; get-args reports `argv`"""
  for name, entry in NATIVE_FUNCTIONS.items():
    env['bindings'][name] = make_native(name, entry['func'])
  env['bindings']["get-args"] = make_native("get-args", make_get_args(list(argv or [])))
  return env
