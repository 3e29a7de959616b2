"""
Utilities module for the plxml interpreter
Contains common helper functions to reduce code duplication
"""

from typing import Any, Dict, List, Optional, Sequence
import sys

from error_handling import (
  ArityMismatch,
  EvalTypeError,
  PlxmlSemanticsError,
)


# ==================== TYPE CHECKING UTILITIES ====================

def get_dict_type(val: Any) -> Optional[str]:
  """Safely get the type tag of a runtime value"""
  return val.get('type') if isinstance(val, dict) else None


def describe_types(values: Sequence[Dict]) -> str:
  """Comma separated type tags, used in operand error messages"""
  return ", ".join(get_dict_type(v) or "Unknown" for v in values)


# ==================== RUNTIME ERROR BUILDERS ====================

def type_mismatch_error(
  func_name: str,
  param_name: str,
  expected: str,
  actual: Dict
) -> EvalTypeError:
  """
  Generate type mismatch error

  Args:
    func_name: Function name
    param_name: Parameter name
    expected: Expected type
    actual: Actual value dict

  Returns:
    EvalTypeError with formatted message
  """
  actual_type = get_dict_type(actual) or 'Unknown'
  return EvalTypeError(
    func_name, f"invalid value for {param_name}: expected {expected}, got {actual_type}"
  )


def arity_error(func_name: str, expected: int, got: int) -> ArityMismatch:
  """
  Generate arity mismatch error

  Args:
    func_name: Function name
    expected: Expected number of arguments
    got: Actual number of arguments

  Returns:
    ArityMismatch carrying both counts
  """
  return ArityMismatch(func_name, expected, got)


def operation_error(op: str, operands: Sequence[Dict]) -> EvalTypeError:
  """Generate error for an operator applied to unsupported operand types"""
  return EvalTypeError(op, f"unsupported operand types ({describe_types(operands)})")


def index_error(op: str, index: int, length: int) -> EvalTypeError:
  """Generate error for an index outside [0, length)"""
  return EvalTypeError(op, f"index {index} out of bounds for length {length}")


def missing_value_error(op: str) -> EvalTypeError:
  """Generate error for a child instruction that produced no value"""
  return EvalTypeError(op, "child instruction produced no value")


# ==================== SEMANTICS ERROR BUILDERS ====================

def missing_child_error(tag: str, child: str, span: Any = None) -> PlxmlSemanticsError:
  return PlxmlSemanticsError(f"missing '{child}' child in '{tag}' node", span)


def missing_attribute_error(tag: str, attribute: str, span: Any = None) -> PlxmlSemanticsError:
  return PlxmlSemanticsError(f"missing '{attribute}' attribute in '{tag}' node", span)


def bad_child_count_error(tag: str, count: int, span: Any = None) -> PlxmlSemanticsError:
  return PlxmlSemanticsError(f"bad child count ({count}) in '{tag}' tag", span)


def unnamed_error(what: str, span: Any = None) -> PlxmlSemanticsError:
  return PlxmlSemanticsError(f"unnamed '{what}'", span)


def unknown_tag_error(tag: str, span: Any = None) -> PlxmlSemanticsError:
  return PlxmlSemanticsError(f"unknown tag '{tag}'", span)


# ==================== VALIDATION UTILITIES ====================

def validate_function_args(
  func_name: str,
  args: List[Dict],
  expected_types: List[Optional[str]]
) -> None:
  """
  Validate native function arguments match expected types

  Args:
    func_name: Function name for error messages
    args: List of argument values
    expected_types: List of expected type names, None accepts any type

  Raises:
    ArityMismatch if the count differs, EvalTypeError on a type mismatch
  """
  if len(args) != len(expected_types):
    raise arity_error(func_name, len(expected_types), len(args))

  for i, (arg, expected) in enumerate(zip(args, expected_types)):
    if expected is None:
      continue
    actual = get_dict_type(arg)
    if actual != expected:
      raise type_mismatch_error(
        func_name,
        f"argument {i+1}",
        expected,
        arg
      )


# ==================== DEBUG OUTPUT ====================

def debug_print(message: str) -> None:
  """Trace line for --debug runs; stderr keeps program output clean"""
  print(f"DEBUG: {message}", file=sys.stderr)
