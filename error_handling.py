"""
Error types and parse error reporting for plxml
Parse errors are enriched with source context, runtime errors carry a span
"""

from typing import List, Optional, Dict, Any
from pyparsing import ParseBaseException
import re


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_parse_error(
    message: str,
    location: int,
    line: int,
    column: int,
    expected: Optional[List[str]] = None,
    got: Optional[str] = None,
    context: Optional[str] = None,
    suggestions: Optional[List[str]] = None
) -> Dict:
    """Create an immutable parse error structure"""
    return {
        'message': message,
        'location': location,
        'line': line,
        'column': column,
        'expected': expected or [],
        'got': got,
        'context': context,
        'suggestions': suggestions or []
    }


def format_parse_error(error: Dict) -> str:
    """Format parse error as string"""
    error_msg = f"Parse error at line {error['line']}, column {error['column']}:\n"
    error_msg += f"  {error['message']}\n"

    if error['expected']:
        error_msg += f"  Expected: {', '.join(error['expected'])}\n"

    if error['got']:
        error_msg += f"  Got: {error['got']}\n"

    if error['context']:
        error_msg += f"  Context:\n{error['context']}\n"

    if error['suggestions']:
        error_msg += f"  Suggestions:\n"
        for suggestion in error['suggestions']:
            error_msg += f"    - {suggestion}\n"

    return error_msg


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 2) -> str:
    """Get context lines around the error"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        if i == line_num - 1:
            context_parts.append(f"{line_prefix}{lines[i]}")
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}^ Error here")
        else:
            context_parts.append(f"{line_prefix}{lines[i]}")

    return '\n'.join(context_parts)


def extract_expected(exc: ParseBaseException) -> List[str]:
    """Extract expected tokens from exception"""
    expected = []

    # pyparsing only reports expectations in the message text
    msg = str(exc.msg)
    if "Expected" in msg:
        expected_match = re.search(r"Expected\s+(.+?)(?:,\s+found|\s+\(|$)", msg)
        if expected_match:
            expected.append(expected_match.group(1))

    return expected if expected else ["well-formed markup"]


def extract_got(source_text: str, line_num: int, col_num: int) -> str:
    """Extract what was actually found at the error location"""
    lines = source_text.split('\n')

    if line_num <= len(lines):
        error_line = lines[line_num - 1]
        if col_num <= len(error_line):
            start = max(0, col_num - 1)
            end = min(len(error_line), col_num + 10)
            got_text = error_line[start:end].strip()
            if got_text:
                return f"'{got_text}'"
            else:
                return "end of line"
        return "end of line"
    return "end of input"


def generate_suggestions(exc: ParseBaseException, got: str, expected: List[str]) -> List[str]:
    """Generate helpful suggestions based on the error"""
    suggestions = []
    msg = str(exc.msg)

    if "closing tag" in msg:
        suggestions.append("Every <tag> must be closed by a matching </tag> or written as <tag/>")

    if got.startswith("'&") or "&" in got:
        suggestions.append("Escape '&' in attribute values as '&amp;'")

    if "=" in got and '"' not in got and "'" not in got:
        suggestions.append("Attribute values must be quoted, e.g. value=\"1\"")

    if got == "end of input":
        suggestions.append("The document ended early - check for an unclosed element")

    if "<" in got and ">" not in got:
        suggestions.append("Tag names must start with a letter or '_'")

    return suggestions


def enhance_parse_exception_dict(exc: ParseBaseException, source_text: str) -> Dict:
    """Convert pyparsing exception to enhanced plxml error dict"""
    line_num = exc.lineno
    col_num = exc.column

    context = get_context_lines(source_text, line_num, col_num)
    expected = extract_expected(exc)
    got = extract_got(source_text, line_num, col_num)
    suggestions = generate_suggestions(exc, got, expected)

    return make_parse_error(
        message=str(exc.msg),
        location=exc.loc,
        line=line_num,
        column=col_num,
        expected=expected,
        got=got,
        context=context,
        suggestions=suggestions
    )


# ============================================================================
# ERROR CLASSES
# ============================================================================

class PlxmlError(Exception):
    """Base class for every error raised by plxml"""


class PlxmlParseError(PlxmlError):
    """Markup syntax error with detailed context"""
    def __init__(self, message: str, location: int = 0, line: int = 0, column: int = 0,
                 expected: Optional[List[str]] = None, got: Optional[str] = None,
                 context: Optional[str] = None, suggestions: Optional[List[str]] = None,
                 filename: str = "<input>"):
        self.message = message
        self.location = location
        self.line = line
        self.column = column
        self.expected = expected or []
        self.got = got
        self.context = context
        self.suggestions = suggestions or []
        self.filename = filename
        super().__init__(message)

    def __str__(self) -> str:
        if not self.line:
            return f"Parse error: {self.message}"
        error_dict = make_parse_error(
            self.message, self.location, self.line, self.column,
            self.expected, self.got, self.context, self.suggestions
        )
        return format_parse_error(error_dict)


class PlxmlSemanticsError(PlxmlError):
    """Invalid program structure found while building the instruction tree"""
    def __init__(self, message: str, span: Any = None):
        self.message = message
        self.span = span
        super().__init__(message)

    def __str__(self) -> str:
        if self.span:
            return f"{self.message} (at {self.span})"
        return self.message


class PlxmlRuntimeError(PlxmlError):
    """Fatal evaluation error; span is filled in by the innermost failing node"""
    def __init__(self, message: str, span: Any = None):
        self.message = message
        self.span = span
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class UnknownVariable(PlxmlRuntimeError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"unknown variable '{name}'")


class UnknownFunction(PlxmlRuntimeError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"unknown function '{name}'")


class ArityMismatch(PlxmlRuntimeError):
    def __init__(self, function: str, expected: int, actual: int):
        self.function = function
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"bad argument count in call to '{function}': expected {expected}, got {actual}")


class EvalTypeError(PlxmlRuntimeError):
    """Invalid operand, incomparable values, bad cast or bad index"""
    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation}: {reason}")


class InaccessibleFile(PlxmlRuntimeError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"inaccessible file '{path}'")


class CallDepthExceeded(PlxmlRuntimeError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"maximum call depth ({limit}) exceeded")


class PlxmlErrorHandler:
    """Turns pyparsing exceptions into PlxmlParseError for one source text"""
    def __init__(self, source_text: str, filename: str = "<input>"):
        self.source_text = source_text
        self.filename = filename
        self.lines = source_text.split('\n')

    def enhance_parse_exception(self, exc: ParseBaseException) -> PlxmlParseError:
        """Convert pyparsing exception to enhanced plxml error"""
        error_dict = enhance_parse_exception_dict(exc, self.source_text)
        return PlxmlParseError(
            message=error_dict['message'],
            location=error_dict['location'],
            line=error_dict['line'],
            column=error_dict['column'],
            expected=error_dict['expected'],
            got=error_dict['got'],
            context=error_dict['context'],
            suggestions=error_dict['suggestions'],
            filename=self.filename
        )
