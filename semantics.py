"""
plxml Semantics Analysis
Validates the markup tree and builds the immutable instruction tree
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import sys

from error_handling import PlxmlSemanticsError
from parsing import MarkupNode, SourceSpan
from utilities import (
  bad_child_count_error,
  missing_attribute_error,
  missing_child_error,
  unknown_tag_error,
  unnamed_error,
)


# ============================================================================
# DATA STRUCTURES (Immutable)
# ============================================================================

@dataclass(frozen=True)
class Instruction:
  """One node of the instruction tree.

  `value` holds the node's scalar payload (variable or function name,
  literal text), `operands` its expression children in evaluation order,
  `body` and `orelse` its statement blocks.
  """
  type: str
  value: Optional[str] = None
  operands: Tuple['Instruction', ...] = ()
  body: Tuple['Instruction', ...] = ()
  orelse: Tuple['Instruction', ...] = ()
  span: Optional[SourceSpan] = None

  def __str__(self) -> str:
    parts = [self.type]
    if self.value is not None:
      parts.append(repr(self.value))
    if self.operands:
      parts.append(f"[{', '.join(str(op) for op in self.operands)}]")
    return " ".join(parts)


@dataclass(frozen=True)
class FunctionDef:
  name: str
  params: Tuple[str, ...]
  body: Tuple[Instruction, ...]
  span: Optional[SourceSpan] = None


@dataclass(frozen=True)
class Program:
  functions: Tuple[FunctionDef, ...]
  main: Tuple[Instruction, ...]


def make_instruction(node_type: str, value: Optional[str] = None,
                     operands: Optional[List[Instruction]] = None,
                     body: Optional[List[Instruction]] = None,
                     orelse: Optional[List[Instruction]] = None,
                     span: Optional[SourceSpan] = None) -> Instruction:
  """Create an immutable instruction node"""
  return Instruction(
      node_type,
      value,
      tuple(operands or ()),
      tuple(body or ()),
      tuple(orelse or ()),
      span
  )


# Tags whose element children form a plain operand list
NARY_TAGS = {
    "array": "ARRAY",
    "add": "ADD",
    "subtract": "SUBTRACT",
    "multiply": "MULTIPLY",
    "divide": "DIVIDE",
    "and": "AND",
    "or": "OR",
}

# Operators that need a first operand to start their fold
NON_EMPTY_TAGS = ("subtract", "divide")

COMPARISON_TAGS = {
    "equal": "EQUAL",
    "greater": "GREATER",
    "lower": "LOWER",
}

# literal tag -> (literal node type, cast node type)
LITERAL_TAGS = {
    "integer": ("INTEGER", "INTEGER_CAST"),
    "float": ("REAL", "REAL_CAST"),
    "string": ("TEXT", "TEXT_CAST"),
}


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def require_attribute(node: MarkupNode, name: str) -> str:
  value = node.attribute(name)
  if value is None:
    raise missing_attribute_error(node.tag, name, node.span)
  return value


def require_wrapper(node: MarkupNode, tag: str) -> MarkupNode:
  """Return the named wrapper child (<then>, <do>, <arguments>...)"""
  wrapper = node.find(tag)
  if wrapper is None:
    raise missing_child_error(node.tag, tag, node.span)
  return wrapper


def first_operand(node: MarkupNode, what: str, skip: Tuple[str, ...] = ()) -> MarkupNode:
  """First element child that is not one of the structural wrappers in `skip`"""
  for child in node.children:
    if child.tag not in skip:
      return child
  raise missing_child_error(node.tag, what, node.span)


def wrapped_operand(node: MarkupNode, tag: str, debug: bool) -> Instruction:
  """Analyze the single expression inside a wrapper such as <from>"""
  wrapper = require_wrapper(node, tag)
  inner = wrapper.first_child()
  if inner is None:
    raise missing_child_error(node.tag, tag, node.span)
  return analyze_cst_node(inner, debug)


def analyze_children(node: MarkupNode, debug: bool = False) -> List[Instruction]:
  return [analyze_cst_node(child, debug) for child in node.children]


# ============================================================================
# NODE ANALYZERS
# ============================================================================

def analyze_value(node: MarkupNode, debug: bool = False) -> Instruction:
  return make_instruction("VALUE", require_attribute(node, "variable"), span=node.span)


def analyze_assign(node: MarkupNode, debug: bool = False) -> Instruction:
  name = require_attribute(node, "variable")
  child = node.first_child()
  if child is None:
    raise missing_child_error("assign", "value", node.span)
  return make_instruction("ASSIGN", name, [analyze_cst_node(child, debug)], span=node.span)


def analyze_literal(node: MarkupNode, debug: bool = False) -> Instruction:
  """<integer value="1"/> is a literal, <integer><x/></integer> a cast"""
  literal_type, cast_type = LITERAL_TAGS[node.tag]
  literal = node.attribute("value")
  if literal is not None:
    return make_instruction(literal_type, literal, span=node.span)
  child = node.first_child()
  if child is None:
    raise missing_attribute_error(node.tag, "value", node.span)
  return make_instruction(cast_type, operands=[analyze_cst_node(child, debug)], span=node.span)


def analyze_nary(node: MarkupNode, debug: bool = False) -> Instruction:
  operands = analyze_children(node, debug)
  if node.tag in NON_EMPTY_TAGS and not operands:
    raise bad_child_count_error(node.tag, 0, node.span)
  return make_instruction(NARY_TAGS[node.tag], operands=operands, span=node.span)


def analyze_not(node: MarkupNode, debug: bool = False) -> Instruction:
  child = node.first_child()
  if child is None:
    raise missing_child_error("not", "value", node.span)
  return make_instruction("NOT", operands=[analyze_cst_node(child, debug)], span=node.span)


def analyze_comparison(node: MarkupNode, debug: bool = False) -> Instruction:
  if len(node.children) != 2:
    raise bad_child_count_error(node.tag, len(node.children), node.span)
  return make_instruction(COMPARISON_TAGS[node.tag], operands=analyze_children(node, debug),
                          span=node.span)


def analyze_call(node: MarkupNode, debug: bool = False) -> Instruction:
  """By-name call when a `function` attribute is present, by-value otherwise"""
  args = analyze_children(require_wrapper(node, "arguments"), debug)
  function_name = node.attribute("function")
  if function_name is not None:
    return make_instruction("CALL_NAMED", function_name, operands=args, span=node.span)
  callee = analyze_cst_node(first_operand(node, "function", ("arguments",)), debug)
  return make_instruction("CALL", operands=[callee] + args, span=node.span)


def analyze_return(node: MarkupNode, debug: bool = False) -> Instruction:
  child = node.first_child()
  if child is None:
    raise missing_child_error("return", "value", node.span)
  return make_instruction("RETURN", operands=[analyze_cst_node(child, debug)], span=node.span)


def analyze_if(node: MarkupNode, debug: bool = False) -> Instruction:
  condition = analyze_cst_node(first_operand(node, "condition", ("then", "else")), debug)
  then_block = analyze_children(require_wrapper(node, "then"), debug)
  else_node = node.find("else")
  if else_node is None:
    return make_instruction("IF", operands=[condition], body=then_block, span=node.span)
  return make_instruction("IF_ELSE", operands=[condition], body=then_block,
                          orelse=analyze_children(else_node, debug), span=node.span)


def analyze_for(node: MarkupNode, debug: bool = False) -> Instruction:
  variable = require_attribute(node, "variable")
  bounds = [wrapped_operand(node, tag, debug) for tag in ("from", "to", "step")]
  body = analyze_children(require_wrapper(node, "do"), debug)
  return make_instruction("FOR", variable, operands=bounds, body=body, span=node.span)


def analyze_each(node: MarkupNode, debug: bool = False) -> Instruction:
  variable = require_attribute(node, "variable")
  array = analyze_cst_node(first_operand(node, "array", ("do",)), debug)
  body = analyze_children(require_wrapper(node, "do"), debug)
  return make_instruction("EACH", variable, operands=[array], body=body, span=node.span)


def analyze_while(node: MarkupNode, debug: bool = False) -> Instruction:
  condition = analyze_cst_node(first_operand(node, "condition", ("do",)), debug)
  body = analyze_children(require_wrapper(node, "do"), debug)
  return make_instruction("WHILE", operands=[condition], body=body, span=node.span)


def analyze_assign_array(node: MarkupNode, debug: bool = False) -> Instruction:
  operands = [wrapped_operand(node, tag, debug) for tag in ("array", "index", "value")]
  return make_instruction("ARRAY_SET", operands=operands, span=node.span)


def analyze_insert_array(node: MarkupNode, debug: bool = False) -> Instruction:
  operands = [wrapped_operand(node, tag, debug) for tag in ("array", "value")]
  return make_instruction("ARRAY_PUSH", operands=operands, span=node.span)


HANDLERS: Dict[str, Callable[[MarkupNode, bool], Instruction]] = {
    "value": analyze_value,
    "assign": analyze_assign,
    "not": analyze_not,
    "call": analyze_call,
    "return": analyze_return,
    "if": analyze_if,
    "for": analyze_for,
    "each": analyze_each,
    "while": analyze_while,
    "assign-array": analyze_assign_array,
    "insert-array": analyze_insert_array,
}
HANDLERS.update({tag: analyze_literal for tag in LITERAL_TAGS})
HANDLERS.update({tag: analyze_nary for tag in NARY_TAGS})
HANDLERS.update({tag: analyze_comparison for tag in COMPARISON_TAGS})


def analyze_cst_node(node: MarkupNode, debug: bool = False) -> Instruction:
  """Analyze a single markup element and return its instruction"""
  if debug:
    print(f"DEBUG: analyzing <{node.tag}> at {node.span}", file=sys.stderr)

  handler = HANDLERS.get(node.tag)
  if handler is None:
    raise unknown_tag_error(node.tag, node.span)
  return handler(node, debug)


# ============================================================================
# PROGRAM ANALYSIS
# ============================================================================

def analyze_function_def(node: MarkupNode, debug: bool = False) -> FunctionDef:
  """Analyze <function name=...><arguments/><body/></function>"""
  name = node.attribute("name")
  if name is None:
    raise unnamed_error("function", node.span)

  params = []
  for argument in require_wrapper(node, "arguments").children:
    param = argument.attribute("name")
    if param is None:
      raise unnamed_error("argument", argument.span)
    params.append(param)

  body = analyze_children(require_wrapper(node, "body"), debug)
  return FunctionDef(name, tuple(params), tuple(body), node.span)


def analyze_program(root: MarkupNode, debug: bool = False) -> Program:
  """Analyze the document root: function definitions plus one <main>"""
  functions = []
  main_node = None
  for child in root.children:
    if child.tag == "function":
      functions.append(analyze_function_def(child, debug))
    elif child.tag == "main":
      if main_node is not None:
        raise PlxmlSemanticsError("invalid program structure: more than one 'main' block",
                                  child.span)
      main_node = child
    else:
      raise PlxmlSemanticsError(
          f"invalid program structure: unexpected '{child.tag}' at top level", child.span)

  if main_node is None:
    raise PlxmlSemanticsError("No 'main' block", root.span)

  main = tuple(analyze_children(main_node, debug))
  if debug:
    print(f"DEBUG: analyzed {len(functions)} functions and {len(main)} main instructions",
          file=sys.stderr)
  return Program(tuple(functions), main)


# ============================================================================
# PRETTY PRINTING
# ============================================================================

def pretty_print_instruction(ins: Instruction, indent: int = 0) -> str:
  """Render an instruction subtree, one node per line"""
  result = "  " * indent + ins.type
  if ins.value is not None:
    result += f"({ins.value!r})"
  result += "\n"
  for operand in ins.operands:
    result += pretty_print_instruction(operand, indent + 1)
  if ins.body:
    result += "  " * (indent + 1) + "do:\n"
    for statement in ins.body:
      result += pretty_print_instruction(statement, indent + 2)
  if ins.orelse:
    result += "  " * (indent + 1) + "else:\n"
    for statement in ins.orelse:
      result += pretty_print_instruction(statement, indent + 2)
  return result


def pretty_print_program(program: Program) -> str:
  result = ""
  for function in program.functions:
    result += f"function {function.name}({', '.join(function.params)})\n"
    for statement in function.body:
      result += pretty_print_instruction(statement, 1)
  result += "main\n"
  for statement in program.main:
    result += pretty_print_instruction(statement, 1)
  return result


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class ProgramAnalyzer:
  """Builds instruction trees from markup trees"""

  def __init__(self, debug: bool = False):
    self.debug = debug

  def analyze(self, root: MarkupNode) -> Program:
    return analyze_program(root, self.debug)

  def analyze_instruction(self, node: MarkupNode) -> Instruction:
    return analyze_cst_node(node, self.debug)


def create_analyzer(debug: bool = False) -> ProgramAnalyzer:
  """Factory function returning an analyzer"""
  return ProgramAnalyzer(debug=debug)


def create_debug_analyzer() -> ProgramAnalyzer:
  """Factory function returning a debug analyzer"""
  return create_analyzer(debug=True)
