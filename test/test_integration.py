"""
Integration tests running the example programs through the command line entry point
"""

import pytest
from pathlib import Path

from main import main


EXAMPLES_DIR = Path(__file__).parent.parent / "examples"


def write_program(directory, body, functions=""):
  path = directory / "program.xml"
  path.write_text(f"<program>{functions}<main>{body}</main></program>", encoding="utf-8")
  return str(path)


class TestExamples:
  """Run the programs shipped in examples/"""

  def test_square(self, capsys):
    assert main([str(EXAMPLES_DIR / "square.xml")]) == 0
    assert capsys.readouterr().out == "49\n"

  def test_factorial_default(self, capsys):
    assert main([str(EXAMPLES_DIR / "factorial.xml")]) == 0
    assert capsys.readouterr().out == "factorial(10) = 3628800\n"

  def test_factorial_with_argument(self, capsys):
    assert main([str(EXAMPLES_DIR / "factorial.xml"), "5"]) == 0
    assert capsys.readouterr().out == "factorial(5) = 120\n"

  def test_arrays(self, capsys):
    assert main([str(EXAMPLES_DIR / "arrays.xml")]) == 0
    assert capsys.readouterr().out == "[10, 2, 3]\n15\n0\n2\n4\n"

  def test_words(self, capsys, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main([str(EXAMPLES_DIR / "words.xml")]) == 0
    assert capsys.readouterr().out == "the\nquick\nbrown\nfox\n4 words\n"
    assert (tmp_path / "words.txt").exists()


class TestCommandLine:

  def test_parse_flag(self, capsys):
    assert main(["--parse", str(EXAMPLES_DIR / "square.xml")]) == 0
    out = capsys.readouterr().out
    assert out.splitlines()[0] == "program"
    assert "function [name='square']" in out

  def test_analyze_flag(self, capsys):
    assert main(["--analyze", str(EXAMPLES_DIR / "square.xml")]) == 0
    out = capsys.readouterr().out
    assert "function square(x)" in out
    assert "MULTIPLY" in out

  def test_debug_traces_to_stderr(self, capsys):
    assert main(["--debug", str(EXAMPLES_DIR / "square.xml")]) == 0
    captured = capsys.readouterr()
    assert captured.out == "49\n"
    assert "DEBUG:" in captured.err

  def test_get_args_includes_script_path(self, capsys, tmp_path):
    path = write_program(tmp_path, "<call function='print-line'><arguments>"
                                   "<call function='get-args'><arguments/></call></arguments></call>")
    assert main([path, "x", "--flag"]) == 0
    assert capsys.readouterr().out == f'["{path}", "x", "--flag"]\n'

  def test_missing_script(self, capsys, tmp_path):
    assert main([str(tmp_path / "nope.xml")]) == 1
    assert "does not exist" in capsys.readouterr().err

  def test_parse_error_exit_status(self, capsys, tmp_path):
    path = tmp_path / "broken.xml"
    path.write_text("<program>\n<main>\n</program>", encoding="utf-8")
    assert main([str(path)]) == 1
    err = capsys.readouterr().err
    assert "Parse error" in err
    assert "mismatched closing tag" in err

  def test_semantics_error_exit_status(self, capsys, tmp_path):
    path = tmp_path / "nomain.xml"
    path.write_text("<program></program>", encoding="utf-8")
    assert main([str(path)]) == 1
    assert "No 'main' block" in capsys.readouterr().err

  def test_runtime_error_reports_location(self, capsys, tmp_path):
    path = tmp_path / "bad.xml"
    path.write_text("<program>\n<main>\n<value variable='ghost'/>\n</main>\n</program>",
                    encoding="utf-8")
    assert main([str(path)]) == 1
    err = capsys.readouterr().err
    assert "unknown variable 'ghost'" in err
    assert f"{path}:3" in err
    assert "Source: <value variable='ghost'/>" in err

  def test_printing_a_list_inside_itself(self, capsys, tmp_path):
    path = write_program(
        tmp_path,
        "<assign variable='a'><array/></assign>"
        "<insert-array><array><value variable='a'/></array><value><value variable='a'/></value></insert-array>"
        "<call function='print-line'><arguments><value variable='a'/></arguments></call>")
    assert main([path]) == 0
    assert capsys.readouterr().out == "[[...]]\n"

  def test_max_call_depth_flag(self, capsys, tmp_path):
    path = write_program(tmp_path, "<call function='loop'><arguments/></call>",
                         functions="<function name='loop'><arguments/><body>"
                                   "<call function='loop'><arguments/></call></body></function>")
    assert main(["--max-call-depth", "30", path]) == 1
    assert "maximum call depth (30) exceeded" in capsys.readouterr().err

  def test_max_call_depth_must_be_positive(self, tmp_path):
    path = write_program(tmp_path, "")
    with pytest.raises(SystemExit):
      main(["--max-call-depth", "0", path])

  def test_version(self, capsys):
    with pytest.raises(SystemExit) as exc_info:
      main(["--version"])
    assert exc_info.value.code == 0
    assert "plxml" in capsys.readouterr().out
