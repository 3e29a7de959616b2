"""
plxml Interpreter
Tree-walking evaluator over the instruction tree
Environments are dictionaries chained through 'parent'; values are the tagged
dictionaries from values.py
"""

from typing import Callable, Dict, List, Optional, Sequence

from error_handling import (
  CallDepthExceeded,
  EvalTypeError,
  PlxmlRuntimeError,
  UnknownFunction,
  UnknownVariable,
)
from semantics import Instruction, Program
from utilities import (
  arity_error,
  debug_print,
  get_dict_type,
  missing_value_error,
  type_mismatch_error,
)
from values import (
  CLOSURE,
  INTEGER,
  LIST,
  NATIVE,
  cast_integer,
  cast_real,
  cast_text,
  clone_value,
  format_value,
  is_truthy,
  make_closure,
  make_integer,
  make_list,
  make_text,
  parse_integer,
  parse_real,
  plxml_add,
  plxml_and,
  plxml_divide,
  plxml_equal,
  plxml_greater,
  plxml_lower,
  plxml_multiply,
  plxml_not,
  plxml_or,
  plxml_subtract,
)
import stdlib


# Parent selection for a called function's frame
LEXICAL_SCOPE = "lexical"
GLOBAL_SCOPE = "global"

DEFAULT_MAX_CALL_DEPTH = 1000


# ============================================================================
# EXECUTION CONTEXT
# ============================================================================

def make_execution_context(debug: bool = False, short_circuit_loops: bool = False,
                           max_call_depth: int = DEFAULT_MAX_CALL_DEPTH) -> Dict:
  """Create an execution context carrying evaluation options"""
  return {
      'debug': debug,
      'short_circuit_loops': short_circuit_loops,
      'max_call_depth': max_call_depth,
      'call_depth': 0
  }


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def make_runtime_env(parent: Optional[Dict] = None, bindings: Optional[Dict] = None) -> Dict:
  """Create a runtime environment"""
  return {
      'parent': parent,
      'bindings': dict(bindings or {}),
      'pending_return': None
  }


def env_bind_value(env: Dict, name: str, value: Dict) -> Dict:
  """Insert or replace a binding in this frame only"""
  env['bindings'][name] = value
  return env


def env_lookup_value(env: Dict, name: str) -> Optional[Dict]:
  """Look up a value in the environment chain"""
  if name in env['bindings']:
    return env['bindings'][name]
  elif env['parent']:
    return env_lookup_value(env['parent'], name)
  return None


def env_root(env: Dict) -> Dict:
  while env['parent'] is not None:
    env = env['parent']
  return env


def env_signal_return(env: Dict, value: Dict) -> None:
  """Mark this frame as returning; the value lives outside the bindings"""
  env['pending_return'] = value


def env_return_pending(env: Dict) -> bool:
  return env['pending_return'] is not None


def env_take_return(env: Dict) -> Optional[Dict]:
  """Remove and return the pending return value, None when nothing returned"""
  value, env['pending_return'] = env['pending_return'], None
  return value


# ============================================================================
# EVALUATION HELPERS
# ============================================================================

def require_value(ins: Instruction, env: Dict, context: Dict, op: str) -> Dict:
  """Evaluate a child that must produce a value for the instruction `op`"""
  value = eval_ast(ins, env, context)
  if value is None:
    raise missing_value_error(op)
  return value


def eval_values(operands: Sequence[Instruction], env: Dict, context: Dict, op: str) -> List[Dict]:
  return [require_value(operand, env, context, op) for operand in operands]


def eval_block(block: Sequence[Instruction], env: Dict, context: Dict) -> None:
  """Run statements in order; once a return is pending the rest are no-ops"""
  for ins in block:
    eval_ast(ins, env, context)


def require_type(value: Dict, expected: str, op: str, what: str) -> Dict:
  if get_dict_type(value) != expected:
    raise type_mismatch_error(op, what, expected, value)
  return value


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_value(ins: Instruction, env: Dict, context: Dict) -> Dict:
  value = env_lookup_value(env, ins.value)
  if value is None:
    raise UnknownVariable(ins.value)
  return clone_value(value)


def eval_assign(ins: Instruction, env: Dict, context: Dict) -> None:
  value = require_value(ins.operands[0], env, context, "assign")
  env_bind_value(env, ins.value, value)


def eval_integer(ins: Instruction, env: Dict, context: Dict) -> Dict:
  return parse_integer(ins.value, "integer")


def eval_real(ins: Instruction, env: Dict, context: Dict) -> Dict:
  return parse_real(ins.value, "float")


def eval_text(ins: Instruction, env: Dict, context: Dict) -> Dict:
  return make_text(ins.value)


def eval_integer_cast(ins: Instruction, env: Dict, context: Dict) -> Dict:
  return cast_integer(require_value(ins.operands[0], env, context, "integer"), "integer")


def eval_real_cast(ins: Instruction, env: Dict, context: Dict) -> Dict:
  return cast_real(require_value(ins.operands[0], env, context, "float"), "float")


def eval_text_cast(ins: Instruction, env: Dict, context: Dict) -> Dict:
  return cast_text(require_value(ins.operands[0], env, context, "string"), "string")


def eval_array(ins: Instruction, env: Dict, context: Dict) -> Dict:
  return make_list(eval_values(ins.operands, env, context, "array"))


def make_nary_evaluator(op: str, fold: Callable[[List[Dict]], Dict]):
  """Evaluator for operators applied to the whole operand list"""
  def evaluator(ins: Instruction, env: Dict, context: Dict) -> Dict:
    return fold(eval_values(ins.operands, env, context, op))
  return evaluator


def make_comparison_evaluator(op: str, compare: Callable[[Dict, Dict], Dict]):
  def evaluator(ins: Instruction, env: Dict, context: Dict) -> Dict:
    left, right = eval_values(ins.operands, env, context, op)
    return compare(left, right)
  return evaluator


def eval_not(ins: Instruction, env: Dict, context: Dict) -> Dict:
  return plxml_not(require_value(ins.operands[0], env, context, "not"))


def eval_call(ins: Instruction, env: Dict, context: Dict) -> Optional[Dict]:
  """Call through a function value; the frame's parent is the caller's env"""
  callee_ins, arg_ins = ins.operands[0], ins.operands[1:]
  args = eval_values(arg_ins, env, context, "call")
  callee = require_value(callee_ins, env, context, "call")
  return call_function(callee, args, env, LEXICAL_SCOPE, context)


def eval_call_named(ins: Instruction, env: Dict, context: Dict) -> Optional[Dict]:
  """Call a top-level function by name; the frame's parent is the root env"""
  args = eval_values(ins.operands, env, context, "call")
  callee = env_root(env)['bindings'].get(ins.value)
  if callee is None:
    raise UnknownFunction(ins.value)
  return call_function(callee, args, env, GLOBAL_SCOPE, context)


def eval_return(ins: Instruction, env: Dict, context: Dict) -> None:
  env_signal_return(env, require_value(ins.operands[0], env, context, "return"))


def eval_if(ins: Instruction, env: Dict, context: Dict) -> None:
  condition = require_value(ins.operands[0], env, context, "if")
  eval_block(ins.body if is_truthy(condition) else ins.orelse, env, context)


def eval_for(ins: Instruction, env: Dict, context: Dict) -> None:
  """Half-open integer range; non-Integer bounds make the loop a no-op"""
  start, stop, step = eval_values(ins.operands, env, context, "for")
  if not all(get_dict_type(v) == INTEGER for v in (start, stop, step)):
    return None
  if step['value'] <= 0:
    raise EvalTypeError("for", f"step must be positive, got {step['value']}")

  for i in range(start['value'], stop['value'], step['value']):
    if context['short_circuit_loops'] and env_return_pending(env):
      break
    env_bind_value(env, ins.value, make_integer(i, "for"))
    eval_block(ins.body, env, context)
  return None


def eval_each(ins: Instruction, env: Dict, context: Dict) -> None:
  array = require_type(require_value(ins.operands[0], env, context, "each"), LIST, "each", "array")
  with array['value'].iterating() as items:
    for item in items:
      if context['short_circuit_loops'] and env_return_pending(env):
        break
      env_bind_value(env, ins.value, clone_value(item))
      eval_block(ins.body, env, context)


def eval_while(ins: Instruction, env: Dict, context: Dict) -> None:
  # A pending return leaves the condition without a value, so the loop ends
  while not env_return_pending(env):
    if not is_truthy(require_value(ins.operands[0], env, context, "while")):
      break
    eval_block(ins.body, env, context)


def eval_array_set(ins: Instruction, env: Dict, context: Dict) -> None:
  array, index, value = eval_values(ins.operands, env, context, "assign-array")
  require_type(array, LIST, "assign-array", "array")
  require_type(index, INTEGER, "assign-array", "index")
  array['value'].set(index['value'], value, "assign-array")


def eval_array_push(ins: Instruction, env: Dict, context: Dict) -> None:
  array, value = eval_values(ins.operands, env, context, "insert-array")
  require_type(array, LIST, "insert-array", "array")
  array['value'].push(value, "insert-array")


EVALUATORS: Dict[str, Callable[[Instruction, Dict, Dict], Optional[Dict]]] = {
    "VALUE": eval_value,
    "ASSIGN": eval_assign,
    "INTEGER": eval_integer,
    "INTEGER_CAST": eval_integer_cast,
    "REAL": eval_real,
    "REAL_CAST": eval_real_cast,
    "TEXT": eval_text,
    "TEXT_CAST": eval_text_cast,
    "ARRAY": eval_array,
    "ADD": make_nary_evaluator("add", plxml_add),
    "SUBTRACT": make_nary_evaluator("subtract", plxml_subtract),
    "MULTIPLY": make_nary_evaluator("multiply", plxml_multiply),
    "DIVIDE": make_nary_evaluator("divide", plxml_divide),
    "AND": make_nary_evaluator("and", plxml_and),
    "OR": make_nary_evaluator("or", plxml_or),
    "NOT": eval_not,
    "EQUAL": make_comparison_evaluator("equal", plxml_equal),
    "GREATER": make_comparison_evaluator("greater", plxml_greater),
    "LOWER": make_comparison_evaluator("lower", plxml_lower),
    "CALL": eval_call,
    "CALL_NAMED": eval_call_named,
    "RETURN": eval_return,
    "IF": eval_if,
    "IF_ELSE": eval_if,
    "FOR": eval_for,
    "EACH": eval_each,
    "WHILE": eval_while,
    "ARRAY_SET": eval_array_set,
    "ARRAY_PUSH": eval_array_push,
}


def eval_ast(ins: Instruction, env: Dict, context: Optional[Dict] = None) -> Optional[Dict]:
  """
  Evaluate one instruction in `env` and return its value, or None for
  statements. Does nothing once a return is pending in `env`.
  """
  if context is None:
    context = make_execution_context()

  if env_return_pending(env):
    return None

  if context['debug']:
    debug_print(f"evaluating {ins.type} at {ins.span}")

  handler = EVALUATORS.get(ins.type)
  if handler is None:
    raise PlxmlRuntimeError(f"unknown instruction type '{ins.type}'", ins.span)

  try:
    return handler(ins, env, context)
  except PlxmlRuntimeError as e:
    if e.span is None:
      e.span = ins.span
    raise


def evaluate(instruction: Instruction, environment: Dict, context: Optional[Dict] = None) -> Optional[Dict]:
  return eval_ast(instruction, environment, context)


# ============================================================================
# FUNCTION CALLS
# ============================================================================

def call_function(func: Dict, args: Sequence[Dict], caller_env: Dict,
                  scope: str = LEXICAL_SCOPE, context: Optional[Dict] = None) -> Optional[Dict]:
  """
  Invoke a Closure or NativeFunction value with evaluated arguments.

  Closures run in a fresh frame whose parent is `caller_env` (LEXICAL_SCOPE)
  or the root of its chain (GLOBAL_SCOPE); the result is the frame's
  pending return value, None when the body never returned.
  """
  if context is None:
    context = make_execution_context()

  func_type = get_dict_type(func)
  if func_type == NATIVE:
    native = func['value']
    if context['debug']:
      debug_print(f"calling native {native['name']} with {len(args)} arguments")
    return native['func'](list(args))

  if func_type != CLOSURE:
    raise EvalTypeError("call", f"cannot call a value of type {func_type}")

  closure = func['value']
  if len(args) != len(closure['params']):
    raise arity_error(closure['name'], len(closure['params']), len(args))

  if context['call_depth'] >= context['max_call_depth']:
    raise CallDepthExceeded(context['max_call_depth'])

  if scope == GLOBAL_SCOPE:
    parent = env_root(caller_env)
  elif scope == LEXICAL_SCOPE:
    parent = caller_env
  else:
    raise ValueError(f"unknown scope policy: {scope}")

  frame = make_runtime_env(parent)
  for param, arg in zip(closure['params'], args):
    env_bind_value(frame, param, arg)

  if context['debug']:
    shown = ", ".join(format_value(arg, nested=True) for arg in args)
    debug_print(f"calling {closure['name']}({shown}) [{scope}]")

  context['call_depth'] += 1
  try:
    eval_block(closure['body'], frame, context)
  except RecursionError:
    raise CallDepthExceeded(context['max_call_depth']) from None
  finally:
    context['call_depth'] -= 1

  return env_take_return(frame)


# ============================================================================
# PROGRAM EVALUATION
# ============================================================================

def create_root_env(program: Program, argv: Optional[Sequence[str]] = None) -> Dict:
  """Root environment: natives, then user functions (which shadow natives)"""
  root = make_runtime_env()
  stdlib.inject_all(root, argv)
  for function in program.functions:
    env_bind_value(root, function.name,
                   make_closure(function.params, function.body, function.name))
  return root


def run_program(program: Program, context: Optional[Dict] = None,
                argv: Optional[Sequence[str]] = None) -> Dict:
  """Run `main` in a child of the root environment and return that environment"""
  if context is None:
    context = make_execution_context()

  root = create_root_env(program, argv)
  main_env = make_runtime_env(root)
  if context['debug']:
    debug_print(f"running main with {len(program.functions)} user functions")
  eval_block(program.main, main_env, context)
  return main_env


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class PlxmlInterpreter:
  """Runs programs with one execution context"""

  def __init__(self, debug: bool = False, short_circuit_loops: bool = False,
               max_call_depth: int = DEFAULT_MAX_CALL_DEPTH):
    self.context = make_execution_context(debug, short_circuit_loops, max_call_depth)

  def run(self, program: Program, argv: Optional[Sequence[str]] = None) -> Dict:
    return run_program(program, self.context, argv)

  def evaluate(self, ins: Instruction, env: Dict) -> Optional[Dict]:
    return eval_ast(ins, env, self.context)

  def call(self, func: Dict, args: Sequence[Dict], env: Dict,
           scope: str = LEXICAL_SCOPE) -> Optional[Dict]:
    return call_function(func, args, env, scope, self.context)


def create_interpreter(debug: bool = False, short_circuit_loops: bool = False,
                       max_call_depth: int = DEFAULT_MAX_CALL_DEPTH) -> PlxmlInterpreter:
  """Factory function returning an interpreter"""
  return PlxmlInterpreter(debug, short_circuit_loops, max_call_depth)


def create_debug_interpreter() -> PlxmlInterpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)
