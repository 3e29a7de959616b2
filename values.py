"""
plxml runtime values
Tagged value dictionaries, the shared list container and the coercion rules
used by arithmetic, comparison and casts
"""

from contextlib import contextmanager
from decimal import Decimal
from functools import reduce
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple
import math
import operator
import re

from error_handling import EvalTypeError
from utilities import (
  get_dict_type,
  index_error,
  operation_error,
)


# ============================================================================
# TYPE TAGS
# ============================================================================

INTEGER = "Integer"
REAL = "Real"
TEXT = "Text"
LIST = "List"
CLOSURE = "Closure"
NATIVE = "NativeFunction"

NUMERIC_TYPES = (INTEGER, REAL)
TEXTUAL_TYPES = (INTEGER, REAL, TEXT)

I64_MIN = -(2 ** 63)
I64_MAX = 2 ** 63 - 1

_INTEGER_LITERAL = re.compile(r"[+-]?[0-9]+")
_REAL_LITERAL = re.compile(
  r"[+-]?(inf|infinity|nan|([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?)",
  re.IGNORECASE
)


# ============================================================================
# SHARED LIST
# ============================================================================

class SharedList:
  """Backing store for List values; every List value holding it is an alias.

  Mutation is refused while any `iterating()` block over the same list is
  open, so `each` loops never observe a changing sequence.
  """

  __slots__ = ('_items', '_iterations')

  def __init__(self, items: Optional[Sequence[Dict]] = None):
    self._items: List[Dict] = list(items or [])
    self._iterations = 0

  def __len__(self) -> int:
    return len(self._items)

  def __repr__(self) -> str:
    return f"SharedList({self._items!r})"

  def _check_mutable(self, op: str) -> None:
    if self._iterations:
      raise EvalTypeError(op, "list modified during iteration")

  def _check_index(self, op: str, index: int) -> None:
    if not 0 <= index < len(self._items):
      raise index_error(op, index, len(self._items))

  def get(self, index: int, op: str = "array-get") -> Dict:
    self._check_index(op, index)
    return self._items[index]

  def set(self, index: int, value: Dict, op: str = "array-set") -> None:
    self._check_mutable(op)
    self._check_index(op, index)
    self._items[index] = value

  def push(self, value: Dict, op: str = "array-push") -> None:
    self._check_mutable(op)
    self._items.append(value)

  def pop(self, op: str = "array-pop") -> Dict:
    self._check_mutable(op)
    if not self._items:
      raise EvalTypeError(op, "cannot pop from an empty list")
    return self._items.pop()

  def snapshot(self) -> Tuple[Dict, ...]:
    return tuple(self._items)

  @contextmanager
  def iterating(self) -> Iterator[Tuple[Dict, ...]]:
    """Yield a snapshot and lock the list against mutation until exit"""
    self._iterations += 1
    try:
      yield tuple(self._items)
    finally:
      self._iterations -= 1


# ============================================================================
# CONSTRUCTORS
# ============================================================================

def make_value(value: Any, type_name: str) -> Dict:
  """Create a runtime value"""
  return {
      'value': value,
      'type': type_name
  }


def make_integer(value: int, op: str = "integer") -> Dict:
  if not I64_MIN <= value <= I64_MAX:
    raise EvalTypeError(op, "integer overflow")
  return make_value(value, INTEGER)


def make_real(value: float) -> Dict:
  return make_value(float(value), REAL)


def make_text(value: str) -> Dict:
  return make_value(value, TEXT)


def make_list(items: Optional[Sequence[Dict]] = None) -> Dict:
  return make_value(SharedList(items), LIST)


def make_bool(flag: bool) -> Dict:
  return make_value(1 if flag else 0, INTEGER)


def make_closure(params: Sequence[str], body: Sequence[Any], name: str = "<anonymous>") -> Dict:
  """Create a user function value; it captures no environment"""
  return make_value({
      'name': name,
      'params': tuple(params),
      'body': tuple(body)
  }, CLOSURE)


def make_native(name: str, func: Callable[[List[Dict]], Optional[Dict]]) -> Dict:
  """Create a host function value following the native call contract"""
  return make_value({
      'name': name,
      'func': func
  }, NATIVE)


def clone_value(value: Dict) -> Dict:
  """Structural copy; a List clone shares the same SharedList"""
  return dict(value)


# ============================================================================
# TRUTHINESS AND FORMATTING
# ============================================================================

def is_truthy(value: Dict) -> bool:
  value_type = value['type']
  if value_type in NUMERIC_TYPES:
    return value['value'] != 0
  elif value_type == TEXT:
    return len(value['value']) != 0
  elif value_type == LIST:
    return len(value['value']) != 0
  elif value_type in (CLOSURE, NATIVE):
    return True
  raise EvalTypeError("truth", f"unknown value type {value_type}")


def format_real(number: float) -> str:
  """Shortest round-trip digits, fully expanded, no trailing '.0'"""
  if math.isnan(number):
    return "NaN"
  if math.isinf(number):
    return "inf" if number > 0 else "-inf"
  text = format(Decimal(repr(number)), 'f')
  if '.' in text:
    text = text.rstrip('0').rstrip('.')
  return text


def format_value(value: Dict, nested: bool = False, rendering: Optional[Set[int]] = None) -> str:
  """Render a value the way print shows it; a list inside itself shows as [...]"""
  value_type = value['type']
  if value_type == INTEGER:
    return str(value['value'])
  elif value_type == REAL:
    return format_real(value['value'])
  elif value_type == TEXT:
    return f'"{value["value"]}"' if nested else value['value']
  elif value_type == LIST:
    shared = value['value']
    rendering = set() if rendering is None else rendering
    if id(shared) in rendering:
      return "[...]"
    rendering.add(id(shared))
    try:
      elements = [format_value(elem, True, rendering) for elem in shared.snapshot()]
    finally:
      rendering.discard(id(shared))
    return f"[{', '.join(elements)}]"
  elif value_type == CLOSURE:
    return f"<function {value['value']['name']}>"
  elif value_type == NATIVE:
    return f"<native {value['value']['name']}>"
  return f"<{value_type}>"


# ============================================================================
# ARITHMETIC
# ============================================================================

def _all_of(values: Sequence[Dict], types: Tuple[str, ...]) -> bool:
  return all(v['type'] in types for v in values)


def _as_float(value: Dict) -> float:
  return float(value['value'])


def _reciprocal(number: float) -> float:
  if number == 0:
    return math.copysign(math.inf, number)
  return 1.0 / number


def _fold(op: Callable[[Any, Any], Any], numbers: Sequence[Any], start: Any) -> Any:
  # strict left-to-right fold, Python's sum() compensates float rounding
  return reduce(op, numbers, start)


def plxml_add(values: Sequence[Dict]) -> Dict:
  """Integer sum, Real sum, or Text concatenation, by promotion ladder"""
  if _all_of(values, (INTEGER,)):
    return make_integer(_fold(operator.add, [v['value'] for v in values], 0), "add")
  elif _all_of(values, NUMERIC_TYPES):
    return make_real(_fold(operator.add, [_as_float(v) for v in values], 0.0))
  elif _all_of(values, TEXTUAL_TYPES):
    return make_text("".join(format_value(v) for v in values))
  raise operation_error("add", values)


def plxml_subtract(values: Sequence[Dict]) -> Dict:
  """first - sum(rest)"""
  if not values:
    raise EvalTypeError("subtract", "needs at least one operand")
  if _all_of(values, (INTEGER,)):
    rest = make_integer(_fold(operator.add, [v['value'] for v in values[1:]], 0), "subtract")
    return make_integer(values[0]['value'] - rest['value'], "subtract")
  elif _all_of(values, NUMERIC_TYPES):
    rest = _fold(operator.add, [_as_float(v) for v in values[1:]], 0.0)
    return make_real(_as_float(values[0]) - rest)
  raise operation_error("subtract", values)


def plxml_multiply(values: Sequence[Dict]) -> Dict:
  if _all_of(values, (INTEGER,)):
    return make_integer(_fold(operator.mul, [v['value'] for v in values], 1), "multiply")
  elif _all_of(values, NUMERIC_TYPES):
    return make_real(_fold(operator.mul, [_as_float(v) for v in values], 1.0))
  raise operation_error("multiply", values)


def plxml_divide(values: Sequence[Dict]) -> Dict:
  """first * product(1 / rest); a zero divisor gives inf or NaN, never raises"""
  if not values:
    raise EvalTypeError("divide", "needs at least one operand")
  if not _all_of(values, NUMERIC_TYPES):
    raise operation_error("divide", values)
  reciprocals = [_reciprocal(_as_float(v)) for v in values[1:]]
  return make_real(_as_float(values[0]) * _fold(operator.mul, reciprocals, 1.0))


# ============================================================================
# LOGIC AND COMPARISON
# ============================================================================

def plxml_and(values: Sequence[Dict]) -> Dict:
  return make_bool(all(is_truthy(v) for v in values))


def plxml_or(values: Sequence[Dict]) -> Dict:
  return make_bool(any(is_truthy(v) for v in values))


def plxml_not(value: Dict) -> Dict:
  return make_bool(not is_truthy(value))


def _sign(difference: Any) -> int:
  return (difference > 0) - (difference < 0)


def plxml_compare(left: Dict, right: Dict) -> int:
  """Three-way comparison returning -1, 0 or 1"""
  left_type, right_type = left['type'], right['type']

  if left_type == INTEGER and right_type == INTEGER:
    return _sign(left['value'] - right['value'])

  if left_type in NUMERIC_TYPES and right_type in NUMERIC_TYPES:
    a, b = _as_float(left), _as_float(right)
    if math.isnan(a) or math.isnan(b):
      raise EvalTypeError("compare", "incomparable values (NaN)")
    return (a > b) - (a < b)

  if left_type == TEXT and right_type == TEXT:
    a, b = left['value'], right['value']
    return (a > b) - (a < b)

  raise EvalTypeError("compare", f"incompatible comparison values ({left_type}, {right_type})")


def plxml_equal(left: Dict, right: Dict) -> Dict:
  return make_bool(plxml_compare(left, right) == 0)


def plxml_greater(left: Dict, right: Dict) -> Dict:
  return make_bool(plxml_compare(left, right) > 0)


def plxml_lower(left: Dict, right: Dict) -> Dict:
  return make_bool(plxml_compare(left, right) < 0)


# ============================================================================
# CASTS
# ============================================================================

def parse_integer(text: str, op: str = "integer") -> Dict:
  if not _INTEGER_LITERAL.fullmatch(text):
    raise EvalTypeError(op, f"cannot parse '{text}' as an integer")
  return make_integer(int(text), op)


def parse_real(text: str, op: str = "float") -> Dict:
  if not _REAL_LITERAL.fullmatch(text):
    raise EvalTypeError(op, f"cannot parse '{text}' as a real")
  return make_real(float(text))


def _truncate(number: float) -> int:
  # saturating float-to-int conversion
  if math.isnan(number):
    return 0
  if number >= I64_MAX:
    return I64_MAX
  if number <= I64_MIN:
    return I64_MIN
  return math.trunc(number)


def cast_integer(value: Dict, op: str = "integer") -> Dict:
  value_type = get_dict_type(value)
  if value_type == INTEGER:
    return clone_value(value)
  elif value_type == REAL:
    return make_integer(_truncate(value['value']), op)
  elif value_type == TEXT:
    return parse_integer(value['value'], op)
  raise EvalTypeError(op, f"cannot convert {value_type} to Integer")


def cast_real(value: Dict, op: str = "float") -> Dict:
  value_type = get_dict_type(value)
  if value_type in NUMERIC_TYPES:
    return make_real(_as_float(value))
  elif value_type == TEXT:
    return parse_real(value['value'], op)
  raise EvalTypeError(op, f"cannot convert {value_type} to Real")


def cast_text(value: Dict, op: str = "string") -> Dict:
  value_type = get_dict_type(value)
  if value_type in TEXTUAL_TYPES:
    return make_text(format_value(value))
  raise EvalTypeError(op, f"cannot convert {value_type} to Text")
