"""
plxml markup parser
Turns program markup into a concrete tree of elements with source spans
"""

from typing import List, Dict, Any, Optional, Tuple
from dataclasses import dataclass, field
import re
import sys

from pyparsing import (
    Empty, Forward, Group, ParseBaseException, ParseFatalException, ParserElement,
    Regex, StringEnd, Suppress, ZeroOrMore, Optional as PyParsingOptional,
    col, lineno,
)

from error_handling import PlxmlParseError, PlxmlErrorHandler

ParserElement.enable_packrat()


XML_ENTITIES = {"amp": "&", "lt": "<", "gt": ">", "quot": '"', "apos": "'"}

_ENTITY = re.compile(r"&(#[0-9]+|#[xX][0-9A-Fa-f]+|[A-Za-z]+)?;?")


def decode_entities(s: str, loc: int, raw: str) -> str:
    """Decode the five XML entities and numeric character references"""

    def replace(match) -> str:
        ref = match.group(1)
        if ref is None or not match.group(0).endswith(";"):
            raise ParseFatalException(s, loc, f"malformed entity reference '{match.group(0)}'")
        if ref.startswith("#"):
            code = int(ref[2:], 16) if ref[1:2] in ("x", "X") else int(ref[1:])
            if not 0 < code <= sys.maxunicode:
                raise ParseFatalException(s, loc, f"invalid character reference '&{ref};'")
            return chr(code)
        if ref not in XML_ENTITIES:
            raise ParseFatalException(s, loc, f"unknown entity '&{ref};'")
        return XML_ENTITIES[ref]

    return _ENTITY.sub(replace, raw)


@dataclass(frozen=True)
class SourceSpan:
    """Source location information for preserving the markup tree"""
    filename: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str = ""

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_col}"
        return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


@dataclass(frozen=True)
class MarkupNode:
    """One element of the concrete markup tree"""
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    children: Tuple['MarkupNode', ...] = ()
    span: Optional[SourceSpan] = None

    def attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def find(self, tag: str) -> Optional['MarkupNode']:
        """First child element with the given (lower-cased) tag"""
        for child in self.children:
            if child.tag == tag:
                return child
        return None

    def first_child(self) -> Optional['MarkupNode']:
        return self.children[0] if self.children else None

    def __str__(self) -> str:
        if self.children:
            children_str = ", ".join(str(child) for child in self.children)
            return f"{self.tag}({self.attributes}, [{children_str}])"
        return f"{self.tag}({self.attributes})"


class MarkupGrammar:
    """pyparsing grammar for the element/attribute subset of XML plxml uses"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.filename = "<input>"
        self._setup_grammar()

    def _setup_grammar(self):
        """Setup the markup grammar"""

        name = Regex(r"[A-Za-z_][A-Za-z0-9_.:\-]*")

        # Attribute values keep their raw text until entity decoding
        quoted_value = Regex(r'"[^"<]*"|\'[^\'<]*\'')
        quoted_value.set_parse_action(lambda s, loc, t: decode_entities(s, loc, t[0][1:-1]))

        attribute = Group(name + Suppress("=") + quoted_value)
        attributes = Group(ZeroOrMore(attribute))

        comment = Suppress(Regex(r"<!--.*?-->", re.DOTALL))
        declaration = Suppress(Regex(r"<\?.*?\?>", re.DOTALL))
        doctype = Suppress(Regex(r"<!DOCTYPE[^>]*>", re.IGNORECASE))
        text = Suppress(Regex(r"[^<]+"))

        element = Forward()
        content = Group(ZeroOrMore(comment | element | text))

        # Yields the location right after the element, for source spans
        end_marker = Empty().leave_whitespace()
        end_marker.set_parse_action(lambda s, loc, t: [loc])

        # No whitespace between '<' or '</' and the tag name
        tag_name = name.copy().leave_whitespace()

        start_tag = Suppress("<") + tag_name + attributes
        empty_element = start_tag + Suppress("/>") + end_marker
        full_element = (start_tag + Suppress(">") + content
                        + Suppress("</") + tag_name + Suppress(">") + end_marker)

        empty_element.set_parse_action(self._make_empty_element)
        full_element.set_parse_action(self._make_full_element)

        element <<= empty_element | full_element

        misc = ZeroOrMore(comment | declaration | doctype)
        self.element = element
        self.document = (PyParsingOptional(declaration) + misc + element + misc + StringEnd())

    def _span(self, s: str, loc: int, end: int) -> SourceSpan:
        return SourceSpan(
            self.filename,
            lineno(loc, s), col(loc, s),
            lineno(end, s), col(end, s),
        )

    def _make_attributes(self, s: str, loc: int, pairs) -> Dict[str, str]:
        attrs = {}
        for attr_name, attr_value in pairs:
            if attr_name in attrs:
                raise ParseFatalException(s, loc, f"duplicate attribute '{attr_name}'")
            attrs[attr_name] = attr_value
        return attrs

    def _make_empty_element(self, s: str, loc: int, tokens) -> MarkupNode:
        tag, pairs, end = tokens[0], tokens[1], tokens[2]
        node = MarkupNode(tag.lower(), self._make_attributes(s, loc, pairs), (),
                          self._span(s, loc, end))
        if self.debug:
            print(f"DEBUG: parsed <{node.tag}/> at {node.span}", file=sys.stderr)
        return node

    def _make_full_element(self, s: str, loc: int, tokens) -> MarkupNode:
        tag, pairs, content, closing, end = tokens[0], tokens[1], tokens[2], tokens[3], tokens[4]
        if closing.lower() != tag.lower():
            raise ParseFatalException(
                s, loc, f"mismatched closing tag </{closing}> for <{tag}>")
        children = tuple(child for child in content if isinstance(child, MarkupNode))
        node = MarkupNode(tag.lower(), self._make_attributes(s, loc, pairs), children,
                          self._span(s, loc, end))
        if self.debug:
            print(f"DEBUG: parsed <{node.tag}> with {len(children)} children at {node.span}",
                  file=sys.stderr)
        return node

    def parse_document(self, text: str, filename: str = "<input>") -> MarkupNode:
        """Parse a whole document and return its root element"""
        self.filename = filename
        try:
            result = self.document.parse_string(text, parse_all=True)
        except ParseBaseException as e:
            raise PlxmlErrorHandler(text, filename).enhance_parse_exception(e) from e
        return result[0]

    def parse_fragment(self, text: str, filename: str = "<input>") -> MarkupNode:
        """Parse a single element, e.g. one instruction"""
        self.filename = filename
        try:
            result = (self.element + StringEnd()).parse_string(text.strip(), parse_all=True)
        except ParseBaseException as e:
            raise PlxmlErrorHandler(text, filename).enhance_parse_exception(e) from e
        return result[0]


class MarkupParser:
    """Main plxml parser: file loading around the markup grammar"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = MarkupGrammar(debug)

    def parse_file(self, filepath: str) -> MarkupNode:
        """Parse a plxml source file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise PlxmlParseError(f"File not found: {filepath}", filename=filepath)
        except UnicodeDecodeError as e:
            raise PlxmlParseError(f"Cannot decode file {filepath}: {e}", filename=filepath)
        return self.grammar.parse_document(content, filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> MarkupNode:
        """Parse plxml source from a string"""
        return self.grammar.parse_document(text, filename)

    def parse_fragment(self, text: str, filename: str = "<input>") -> MarkupNode:
        """Parse a single element from a string"""
        return self.grammar.parse_fragment(text, filename)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> MarkupParser:
    """Create a plxml parser"""
    return MarkupParser(debug=debug)


def create_debug_parser() -> MarkupParser:
    """Create a plxml parser with debug enabled"""
    return MarkupParser(debug=True)


# Utility functions for working with the markup tree
def find_nodes_by_tag(node: MarkupNode, tag: str) -> List[MarkupNode]:
    """Find all elements with a given tag"""
    result = []

    def search(current: MarkupNode):
        if current.tag == tag:
            result.append(current)
        for child in current.children:
            search(child)

    search(node)
    return result


def pretty_print_cst(node: MarkupNode, indent: int = 0) -> str:
    """Pretty print a markup tree for debugging"""
    result = "  " * indent + node.tag
    if node.attributes:
        attrs = " ".join(f"{k}={v!r}" for k, v in node.attributes.items())
        result += f" [{attrs}]"
    result += "\n"

    for child in node.children:
        result += pretty_print_cst(child, indent + 1)

    return result


def cst_to_dict(node: MarkupNode) -> Dict[str, Any]:
    """Convert a markup tree to a dictionary representation"""
    return {
        "tag": node.tag,
        "attributes": dict(node.attributes),
        "span": {
            "filename": node.span.filename,
            "start_line": node.span.start_line,
            "start_col": node.span.start_col,
            "end_line": node.span.end_line,
            "end_col": node.span.end_col,
        } if node.span else None,
        "children": [cst_to_dict(child) for child in node.children]
    }
