"""
Tests for runtime values: arithmetic promotion, comparison, casts,
formatting and the shared list container
"""

import math
import pytest

from error_handling import EvalTypeError
from values import (
  I64_MAX,
  INTEGER,
  LIST,
  REAL,
  TEXT,
  SharedList,
  cast_integer,
  cast_real,
  cast_text,
  clone_value,
  format_real,
  format_value,
  is_truthy,
  make_closure,
  make_integer,
  make_list,
  make_native,
  make_real,
  make_text,
  parse_integer,
  parse_real,
  plxml_add,
  plxml_and,
  plxml_compare,
  plxml_divide,
  plxml_equal,
  plxml_greater,
  plxml_lower,
  plxml_multiply,
  plxml_not,
  plxml_or,
  plxml_subtract,
)


def ints(*numbers):
  return [make_integer(n) for n in numbers]


class TestArithmetic:
  """Promotion ladder Integer -> Real -> Text"""

  def test_integer_add_stays_integer(self):
    result = plxml_add(ints(1, 2, 3))
    assert result == {'value': 6, 'type': INTEGER}

  def test_integer_add_is_order_independent(self):
    assert plxml_add(ints(4, 9, -2)) == plxml_add(ints(-2, 4, 9))

  def test_one_real_makes_result_real(self):
    result = plxml_add([make_integer(1), make_real(0.5)])
    assert result['type'] == REAL
    assert result['value'] == 1.5

  def test_text_makes_add_a_concatenation(self):
    result = plxml_add([make_integer(1), make_text("a"), make_real(2.5)])
    assert result == {'value': "1a2.5", 'type': TEXT}

  def test_add_rejects_lists(self):
    with pytest.raises(EvalTypeError, match="unsupported operand types"):
      plxml_add([make_integer(1), make_list()])

  def test_empty_add_and_multiply(self):
    assert plxml_add([]) == make_integer(0)
    assert plxml_multiply([]) == make_integer(1)

  def test_subtract_takes_sum_of_rest(self):
    assert plxml_subtract(ints(10, 1, 2))['value'] == 7
    assert plxml_subtract(ints(5))['value'] == 5

  def test_subtract_and_multiply_reject_text(self):
    with pytest.raises(EvalTypeError):
      plxml_subtract([make_integer(1), make_text("a")])
    with pytest.raises(EvalTypeError):
      plxml_multiply([make_text("a"), make_integer(2)])

  def test_subtract_needs_an_operand(self):
    with pytest.raises(EvalTypeError, match="at least one operand"):
      plxml_subtract([])

  def test_integer_overflow_is_an_error(self):
    with pytest.raises(EvalTypeError, match="overflow"):
      plxml_add(ints(I64_MAX, 1))
    with pytest.raises(EvalTypeError, match="overflow"):
      plxml_multiply(ints(I64_MAX, 2))

  def test_real_sums_fold_left_to_right(self):
    values = [make_real(0.1)] * 10
    assert plxml_add(values)['value'] == 0.9999999999999999


class TestDivide:
  """Division multiplies by reciprocals and never raises on zero"""

  def test_divide_uses_reciprocals(self):
    assert plxml_divide(ints(49, 49))['value'] == 0.9999999999999999

  def test_divide_result_is_always_real(self):
    result = plxml_divide(ints(8, 2))
    assert result == {'value': 4.0, 'type': REAL}

  def test_divide_matches_reciprocal_product(self):
    a, b, c = 7.0, 3.0, 11.0
    assert plxml_divide([make_real(a), make_real(b), make_real(c)])['value'] == a * ((1 / b) * (1 / c))

  def test_divide_by_zero_gives_signed_infinity(self):
    assert plxml_divide(ints(1, 0))['value'] == math.inf
    assert plxml_divide(ints(-1, 0))['value'] == -math.inf

  def test_zero_over_zero_is_nan(self):
    assert math.isnan(plxml_divide(ints(0, 0))['value'])

  def test_divide_rejects_text(self):
    with pytest.raises(EvalTypeError):
      plxml_divide([make_text("6"), make_integer(2)])

  def test_divide_needs_an_operand(self):
    with pytest.raises(EvalTypeError):
      plxml_divide([])


class TestLogicAndComparison:

  def test_truthiness(self):
    assert not is_truthy(make_integer(0))
    assert not is_truthy(make_real(0.0))
    assert not is_truthy(make_text(""))
    assert not is_truthy(make_list())
    assert is_truthy(make_integer(-1))
    assert is_truthy(make_text("0"))
    assert is_truthy(make_list(ints(0)))
    assert is_truthy(make_closure([], [], "f"))
    assert is_truthy(make_native("n", lambda args: None))

  def test_and_or_not(self):
    assert plxml_and(ints(1, 2))['value'] == 1
    assert plxml_and(ints(1, 0))['value'] == 0
    assert plxml_and([])['value'] == 1
    assert plxml_or(ints(0, 3))['value'] == 1
    assert plxml_or([])['value'] == 0
    assert plxml_not(make_text(""))['value'] == 1

  def test_compare_mixed_numbers(self):
    assert plxml_compare(make_integer(5), make_real(5.0)) == 0
    assert plxml_compare(make_real(2.5), make_integer(3)) == -1

  def test_compare_large_integers_exactly(self):
    assert plxml_compare(make_integer(I64_MAX), make_integer(I64_MAX - 1)) == 1

  def test_compare_text_by_code_point(self):
    assert plxml_compare(make_text("abc"), make_text("abd")) == -1
    assert plxml_compare(make_text("b"), make_text("B")) == 1

  def test_compare_nan_is_an_error(self):
    with pytest.raises(EvalTypeError, match="NaN"):
      plxml_compare(make_real(math.nan), make_integer(1))

  def test_compare_text_with_number_is_an_error(self):
    with pytest.raises(EvalTypeError, match="incompatible"):
      plxml_compare(make_text("1"), make_integer(1))

  def test_comparison_results_are_integers(self):
    assert plxml_equal(make_integer(2), make_real(2.0)) == make_integer(1)
    assert plxml_greater(make_integer(2), make_integer(3)) == make_integer(0)
    assert plxml_lower(make_text("a"), make_text("b")) == make_integer(1)


class TestCasts:

  def test_integer_literals(self):
    assert parse_integer("42")['value'] == 42
    assert parse_integer("-7")['value'] == -7
    assert parse_integer("+3")['value'] == 3

  @pytest.mark.parametrize("text", ["4.2", " 42", "", "0x10", "1_000"])
  def test_bad_integer_literals(self, text):
    with pytest.raises(EvalTypeError, match="cannot parse"):
      parse_integer(text)

  def test_real_literals(self):
    assert parse_real("1e3")['value'] == 1000.0
    assert parse_real(".5")['value'] == 0.5
    assert parse_real("inf")['value'] == math.inf
    assert math.isnan(parse_real("NaN")['value'])

  def test_bad_real_literal(self):
    with pytest.raises(EvalTypeError):
      parse_real("abc")

  def test_real_to_integer_truncates(self):
    assert cast_integer(make_real(3.9))['value'] == 3
    assert cast_integer(make_real(-3.9))['value'] == -3

  def test_real_to_integer_saturates(self):
    assert cast_integer(make_real(1e30))['value'] == I64_MAX
    assert cast_integer(make_real(math.nan))['value'] == 0

  def test_text_casts(self):
    assert cast_integer(make_text("12"))['value'] == 12
    assert cast_real(make_integer(2)) == make_real(2.0)
    assert cast_text(make_real(1.0)) == make_text("1")
    assert cast_text(make_integer(-4)) == make_text("-4")

  def test_lists_never_cast(self):
    for cast in (cast_integer, cast_real, cast_text):
      with pytest.raises(EvalTypeError, match="cannot convert List"):
        cast(make_list())


class TestFormatting:

  @pytest.mark.parametrize("number,expected", [
      (1.0, "1"),
      (0.1, "0.1"),
      (-2.5, "-2.5"),
      (1e20, "100000000000000000000"),
      (1e-7, "0.0000001"),
      (-0.0, "-0"),
      (math.inf, "inf"),
      (-math.inf, "-inf"),
      (math.nan, "NaN"),
  ])
  def test_format_real(self, number, expected):
    assert format_real(number) == expected

  def test_format_nested_list(self):
    value = make_list([make_integer(1), make_text("a"), make_list([make_real(2.5)])])
    assert format_value(value) == '[1, "a", [2.5]]'

  def test_format_functions(self):
    assert format_value(make_closure(["x"], [], "square")) == "<function square>"
    assert format_value(make_native("print", lambda args: None)) == "<native print>"


class TestSharedList:
  """Lists are aliased by every value holding them"""

  def test_clones_share_the_list(self):
    a = make_list(ints(1, 2))
    b = clone_value(a)
    b['value'].push(make_integer(3))
    assert len(a['value']) == 3
    assert a['type'] == LIST

  def test_set_checks_bounds_before_mutating(self):
    shared = SharedList(ints(1, 2))
    with pytest.raises(EvalTypeError, match="out of bounds"):
      shared.set(2, make_integer(9))
    with pytest.raises(EvalTypeError, match="out of bounds"):
      shared.set(-1, make_integer(9))
    assert shared.snapshot() == tuple(ints(1, 2))

  def test_pop_from_empty_list(self):
    with pytest.raises(EvalTypeError, match="empty"):
      SharedList().pop()

  def test_pop_returns_last(self):
    shared = SharedList(ints(1, 2))
    assert shared.pop() == make_integer(2)
    assert len(shared) == 1

  def test_mutation_during_iteration_is_rejected(self):
    shared = SharedList(ints(1, 2, 3))
    with shared.iterating() as items:
      assert items == tuple(ints(1, 2, 3))
      with pytest.raises(EvalTypeError, match="modified during iteration"):
        shared.push(make_integer(4))
      with pytest.raises(EvalTypeError, match="modified during iteration"):
        shared.set(0, make_integer(4))
    shared.push(make_integer(4))
    assert len(shared) == 4

  def test_reads_are_allowed_during_iteration(self):
    shared = SharedList(ints(1, 2))
    with shared.iterating():
      assert shared.get(1) == make_integer(2)
