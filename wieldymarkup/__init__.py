from .compiler import (
    Attribute,
    Compiler,
    CompilerException,
    OpenTag,
    ParsedLine,
    Selector,
    get_leading_whitespace_from_text,
    get_selector_from_line,
    get_tag_nest_level,
    parse_selector,
    remove_grouped_text,
)

__version__ = "0.1.0"
