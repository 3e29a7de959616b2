"""
Test configuration for plxml tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import create_parser
from semantics import create_analyzer
from interpreter import create_interpreter


@pytest.fixture
def parser():
  """Provide a fresh markup parser for each test"""
  return create_parser()


@pytest.fixture
def analyzer():
  return create_analyzer()


@pytest.fixture
def build_program(parser, analyzer):
  """Parse and analyze a program source string"""
  def build(source):
    return analyzer.analyze(parser.parse_string(source, "<test>"))
  return build


@pytest.fixture
def run_main(build_program):
  """Run `body` as the main block, after the given function definitions.

  Returns the main environment; keyword options configure the interpreter.
  """
  def run(body, functions="", argv=None, **options):
    program = build_program(f"<program>{functions}<main>{body}</main></program>")
    return create_interpreter(**options).run(program, argv)
  return run
