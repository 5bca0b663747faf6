import logging
import re
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_TOKEN = '`'
MULTI_TAG_SEPARATOR = '\\-\\'
TEMPLATE_DELIMITERS = {'{{': '}}', '<%': '%>'}

_TAG_PREFIX = re.compile(r'[^#.]*')
_SELECTOR_SEGMENT = re.compile(r'[#.][^#.]*')


class CompilerException(ValueError):
    """Raised when markup cannot be compiled. Carries the 1-based source line."""

    def __init__(self, message: str, line_number: int):
        super().__init__(f"WieldyMarkup Compile Error (Line {line_number}): {message}")
        self.message = message
        self.line_number = line_number


class OpenTag(NamedTuple):
    level: int
    tag: str


class Attribute(NamedTuple):
    name: str
    value: str

    def render(self) -> str:
        # Values go out verbatim, a '"' inside a value breaks the markup
        return f' {self.name}="{self.value}"'


@dataclass
class Selector:
    tag: str = 'div'
    tag_id: Optional[str] = None
    tag_classes: List[str] = field(default_factory=list)


@dataclass
class ParsedLine:
    """Scratch results for a single logical line, discarded once it is emitted."""
    selector: Selector = field(default_factory=Selector)
    tag_attributes: List[Attribute] = field(default_factory=list)
    inner_text: Optional[str] = None
    self_closing: bool = False
    embedded: bool = False


# --- Pure helpers ---

def remove_grouped_text(text: str, z: str) -> str:
    """
    Removes every substring surrounded by the grouping substring `z`, along
    with the grouping substrings themselves. Text before the first `z` is kept,
    text up to the next `z` is dropped, and so on alternately.
    """
    return ''.join(text.split(z)[::2])


def get_selector_from_line(line: str) -> str:
    """Returns the trimmed line up to its first space or tab."""
    line = line.strip()
    for index, char in enumerate(line):
        if char in ' \t':
            return line[:index]
    return line


def get_tag_nest_level(text: str, open_string: str = '<', close_string: str = '>') -> int:
    """
    Determines the nesting level left open at the end of `text`.

    Scans left to right, taking whichever delimiter comes first at each step.
    Opening delimiters add one, closing delimiters subtract one, so the result
    is negative when closes outnumber opens.
    """
    if not open_string or not close_string:
        raise ValueError("Nesting delimiters must be non-empty strings.")

    nest_level = 0
    position = 0
    while True:
        open_index = text.find(open_string, position)
        close_index = text.find(close_string, position)
        if open_index == -1 and close_index == -1:
            break

        if close_index == -1 or (open_index != -1 and open_index < close_index):
            nest_level += 1
            position = open_index + len(open_string)
        else:
            nest_level -= 1
            position = close_index + len(close_string)

    return nest_level


def get_leading_whitespace_from_text(text: str) -> str:
    """Returns the run of spaces and tabs at the start of `text`."""
    return text[:len(text) - len(text.lstrip(' \t'))]


def parse_selector(selector: str) -> Selector:
    """
    Parses a selector such as `span.class1#id.class2` into tag, ID, and classes.
    The tag defaults to `div`. When several IDs are given the last one is kept.
    """
    tag = _TAG_PREFIX.match(selector).group(0)
    parsed = Selector(tag=tag or 'div')
    for segment in _SELECTOR_SEGMENT.findall(selector[len(tag):]):
        if segment[0] == '#':
            parsed.tag_id = segment[1:]
        else:
            parsed.tag_classes.append(segment[1:])
    return parsed


def _whitespace_boundary(text: str, start: int, end: int) -> Optional[int]:
    """Index just past the last space or tab in text[start:end], if any."""
    for index in range(end - 1, start - 1, -1):
        if text[index] in ' \t':
            return index + 1
    return None


class Compiler:
    """
    WieldyMarkup Compiler
    Compiles WieldyMarkup, an indentation based HTML shorthand, into HTML with
    each tag indented on its own line, or with no whitespace between tags when
    compressing.

    Features:
    - Indentation-based hierarchy, indent unit detected from the first indented line
    - CSS-like selectors (tag, #id, .class), tag defaults to div
    - key=value attributes, values may hold {{ }} or <% %> template expressions
    - Inline content (<...>) that may span several lines
    - Self-closing tags (trailing /)
    - Several nested tags on one line separated by \\-\\
    - Embedded lines starting with the embedding token, passed through as-is
    - No HTML escaping
    """

    def __init__(self, text: str = '', compress: bool = False,
                 embedding_token: str = DEFAULT_EMBEDDING_TOKEN):
        """Initializes the compiler, compiling `text` straight away if given."""
        self.text: str = text or ''
        self.compress: bool = bool(compress)
        self.embedding_token: str = embedding_token
        self._reset()

        if self.text:
            self.compile()

    def _reset(self):
        self.output: str = ''
        self.open_tags: List[OpenTag] = []
        self.indent_token: str = ''
        self.current_level: int = 0
        self.previous_level: int = 0
        self.line_number: int = 0

    def _fatal_error(self, message: str, line_number: Optional[int] = None):
        """Raises a fatal compilation error."""
        raise CompilerException(message, self.line_number if line_number is None else line_number)

    def compile(self, text: Optional[str] = None, compress: Optional[bool] = None) -> str:
        """Compiles WieldyMarkup into HTML, overriding the stored text/compress if given."""
        if text is not None:
            self.text = text
        if compress is not None:
            self.compress = bool(compress)

        # Reset state for fresh compilation
        self._reset()

        while self.text:
            self.process_current_level()
            self.close_lower_level_tags()
            self.process_next_line()

        # Close any remaining open tags, whatever their level
        while self.open_tags:
            self.close_tag()

        logger.debug("Compiled %d lines into %d characters of HTML", self.line_number, len(self.output))
        return self.output

    def process_current_level(self):
        """Determines the nesting level of the next line from its leading whitespace."""
        self.previous_level = self.current_level
        leading_whitespace = get_leading_whitespace_from_text(self.text)
        if not leading_whitespace:
            self.current_level = 0
            return

        if not self.indent_token:
            self.indent_token = leading_whitespace
            logger.debug("Line %d: indent unit set to %r", self.line_number + 1, leading_whitespace)

        level = 0
        while leading_whitespace.startswith(self.indent_token):
            leading_whitespace = leading_whitespace[len(self.indent_token):]
            level += 1

        if leading_whitespace:
            logger.debug("Line %d: ignoring partial indentation %r", self.line_number + 1, leading_whitespace)
        self.current_level = level

    def close_lower_level_tags(self):
        """Closes every open tag nested at or below the current level."""
        while self.open_tags and self.open_tags[-1].level >= self.current_level:
            self.close_tag()

    def close_tag(self):
        """Pops the innermost open tag and writes its closing tag."""
        open_tag = self.open_tags.pop()
        if not self.compress:
            self.output += self.indent_token * open_tag.level
        self.output += f"</{open_tag.tag}>"
        if not self.compress:
            self.output += "\n"

    def _next_physical_line(self) -> str:
        line, _, self.text = self.text.partition('\n')
        self.line_number += 1
        return line

    def process_next_line(self) -> ParsedLine:
        """
        Consumes the next logical line of text and writes its HTML.
        Returns the parse results of the last tag on the line.
        """
        line = self._next_physical_line().strip()
        if not line:
            return ParsedLine()

        # Whole line embedded HTML, starting with the embedding token
        if self.embedding_token and line.startswith(self.embedding_token):
            self.process_embedded_line(line)
            return ParsedLine(embedded=True)

        # Every tag but the last in a \-\ chain opens and nests the next one
        head, separator, tail = line.partition(MULTI_TAG_SEPARATOR)
        while separator and tail.replace(MULTI_TAG_SEPARATOR, '').strip():
            parsed, _ = self._parse_tag(head)
            self.add_html_to_output(parsed)
            self.previous_level = self.current_level
            self.current_level += 1
            head, separator, tail = tail.partition(MULTI_TAG_SEPARATOR)

        parsed, rest_of_line = self._parse_tag(head)
        if rest_of_line.startswith('<'):
            parsed.inner_text = self._collect_inner_text(rest_of_line)
        elif rest_of_line.startswith('/') and rest_of_line.endswith('/'):
            parsed.self_closing = True

        self.add_html_to_output(parsed)
        return parsed

    def _parse_tag(self, segment: str) -> Tuple[ParsedLine, str]:
        """Parses selector and attributes, returning what is left of the segment."""
        segment = segment.strip()
        selector = get_selector_from_line(segment)
        parsed = ParsedLine(selector=parse_selector(selector))
        parsed.tag_attributes, rest_of_line = self.process_attributes(segment[len(selector):].strip())
        return parsed, rest_of_line

    def _collect_inner_text(self, inner_text: str) -> str:
        """Folds in physical lines until the <...> content is balanced, then unwraps it."""
        start_line = self.line_number
        nest_level = get_tag_nest_level(inner_text)
        if nest_level < 0:
            self._fatal_error("Too many '>' found", start_line)

        while nest_level > 0:
            if not self.text:
                self._fatal_error("Unmatched '<' found", start_line)
            # Guarantee exactly one space between text from different lines
            next_line = self._next_physical_line().strip()
            nest_level += get_tag_nest_level(next_line)
            inner_text += ' ' + next_line

        return inner_text.strip()[1:-1].strip()

    def process_embedded_line(self, line: str):
        """Writes an embedded line without compiling it, minus the embedding token."""
        if not self.compress:
            self.output += self.indent_token * self.current_level
        self.output += line[len(self.embedding_token):]
        if not self.compress:
            self.output += "\n"

    def process_attributes(self, rest_of_line: str) -> Tuple[List[Attribute], str]:
        """
        Parses key=value attributes off the start of a line whose selector was
        already removed. Returns the attributes and everything after them.

        Parsing stops at inline content (a '<' ahead of the next '='). When two
        values can't be told apart because no whitespace sits between them,
        parsing stops and the text is handed back unparsed.
        """
        attributes: List[Attribute] = []
        while rest_of_line:
            equals_index = rest_of_line.find('=')
            if equals_index == -1:
                break
            open_index = rest_of_line.find('<')
            if -1 < open_index < equals_index:
                break

            opener = rest_of_line[equals_index + 1:equals_index + 3]
            if opener in TEMPLATE_DELIMITERS:
                closer = TEMPLATE_DELIMITERS[opener]
                close_index = rest_of_line.find(closer, equals_index + 3)
                if close_index == -1:
                    self._fatal_error(f"Unmatched '{opener}' found")
                boundary = close_index + len(closer)

            elif rest_of_line.find('=', equals_index + 1) == -1:
                boundary = open_index if open_index != -1 else len(rest_of_line)

            else:
                next_equals_index = rest_of_line.index('=', equals_index + 1)
                boundary = _whitespace_boundary(rest_of_line, equals_index + 1, next_equals_index)
                if boundary is None:
                    logger.debug("Line %d: could not separate attributes in %r", self.line_number, rest_of_line)
                    break

            name, _, value = rest_of_line[:boundary].strip().partition('=')
            attributes.append(Attribute(name, value))
            rest_of_line = rest_of_line[boundary:]

        return attributes, rest_of_line.strip()

    def add_html_to_output(self, parsed: ParsedLine):
        """Adds the HTML for one parsed tag to output, pushing it if it stays open."""
        if parsed.embedded:
            return

        selector = parsed.selector
        tag_html = f"<{selector.tag}"
        if selector.tag_id is not None:
            tag_html += f' id="{selector.tag_id}"'
        if selector.tag_classes:
            tag_html += f' class="{" ".join(selector.tag_classes)}"'
        tag_html += ''.join(attribute.render() for attribute in parsed.tag_attributes)

        if parsed.self_closing:
            tag_html += " />"
        else:
            tag_html += ">"
            if parsed.inner_text is not None:
                tag_html += f"{parsed.inner_text}</{selector.tag}>"

        if not self.compress:
            self.output += self.indent_token * self.current_level
        self.output += tag_html
        if not self.compress:
            self.output += "\n"

        if not parsed.self_closing and parsed.inner_text is None:
            self.open_tags.append(OpenTag(self.current_level, selector.tag))
