"""Structural parsing of component sources.

Scripts are scanned into a ``SourceModule``: an ordered list of raw text
segments and ``ImportNode`` objects for static imports, side-effect
imports, ``export ... from``, dynamic ``import()`` and ``require()``.
Rendering a module whose nodes are untouched reproduces the input
byte-for-byte.

The scanner understands strings, template literals (including nested
``${}`` expressions), comments, regular expression literals and JSX well
enough to locate import specifiers and to reject malformed input; it is
not a full JavaScript grammar.
"""

from __future__ import annotations

import json
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from common.errors import ParseError


class ImportKind(Enum):
    STATIC = "static"
    SIDE_EFFECT = "side_effect"
    EXPORT_FROM = "export_from"
    DYNAMIC = "dynamic"
    REQUIRE = "require"


@dataclass
class ImportNode:
    """One module reference; ``render`` rebuilds its source text.

    ``keyword + clause + from_text + quote + specifier + quote + tail``
    is exactly the original text until a transformer edits a field.
    """

    kind: ImportKind
    keyword: str
    clause: str
    from_text: str
    quote: str
    specifier: str
    tail: str
    line: int = 0
    removed: bool = False

    @property
    def is_static(self) -> bool:
        return self.kind in (ImportKind.STATIC, ImportKind.EXPORT_FROM)

    def render(self) -> str:
        if self.removed:
            return ""
        return (
            f"{self.keyword}{self.clause}{self.from_text}"
            f"{self.quote}{self.specifier}{self.quote}{self.tail}"
        )


Segment = Union[str, ImportNode]


@dataclass
class SourceModule:
    path: str
    segments: List[Segment] = field(default_factory=list)

    def imports(self) -> List[ImportNode]:
        """Live import nodes in source order."""
        return [s for s in self.segments if isinstance(s, ImportNode) and not s.removed]

    def render(self) -> str:
        out = []
        drop_newline = False
        for segment in self.segments:
            if isinstance(segment, ImportNode):
                if segment.removed:
                    drop_newline = True
                    continue
                out.append(segment.render())
            else:
                # A removed statement takes its line break with it.
                if drop_newline:
                    if segment.startswith("\r\n"):
                        segment = segment[2:]
                    elif segment.startswith("\n"):
                        segment = segment[1:]
                out.append(segment)
            drop_newline = False
        return "".join(out)


JSX_EXTENSIONS = {".js", ".jsx", ".tsx"}

_CLOSERS = {")": "(", "]": "[", "}": "{"}
_QUOTES = "\"'"
_REGEX_PRECEDERS = set("(,=:[!&|?{};+-*%<>~^")
_REGEX_KEYWORDS = {
    "return", "typeof", "case", "do", "else", "in", "of", "new",
    "delete", "void", "throw", "yield", "await", "instanceof",
}
_JSX_PRECEDERS = set("(,=:[!&|?{};>")
_JSX_KEYWORDS = {"return", "yield", "default", "await", "case"}
_STATEMENT_PRECEDERS = {";", "{", "}"}


class _NotJsx(Exception):
    """A '<' that turned out not to open a JSX element."""


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch in "_$"


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


class _Scanner:
    def __init__(self, path: str, text: str, *, jsx: bool, component: Optional[str]):
        self.path = path
        self.text = text
        self.n = len(text)
        self.jsx = jsx
        self.component = component
        self.nodes: List[Tuple[int, int, ImportNode]] = []
        # Last significant token: (kind, value, end offset); kind is punct, word or value.
        self.last: Tuple[Optional[str], Optional[str], int] = (None, None, 0)

    # ------------------------------------------------------------- helpers

    def error(self, pos: int, cause: str) -> ParseError:
        line = self.text.count("\n", 0, pos) + 1
        return ParseError(self.path, cause, line=line, component=self.component)

    def mark(self, kind: str, value: Optional[str], end: int) -> None:
        self.last = (kind, value, end)

    def regex_allowed(self) -> bool:
        kind, value, _ = self.last
        if kind is None:
            return True
        if kind == "punct":
            return value in _REGEX_PRECEDERS
        return kind == "word" and value in _REGEX_KEYWORDS

    def jsx_allowed(self) -> bool:
        kind, value, _ = self.last
        if kind is None:
            return True
        if kind == "punct":
            return value in _JSX_PRECEDERS
        return kind == "word" and value in _JSX_KEYWORDS

    def at_statement_start(self, pos: int) -> bool:
        kind, value, end = self.last
        if kind is None:
            return True
        if kind == "punct" and value == ".":
            return False
        if kind == "punct" and value in _STATEMENT_PRECEDERS:
            return True
        return "\n" in self.text[end:pos]

    def after_dot(self) -> bool:
        kind, value, _ = self.last
        return kind == "punct" and value == "."

    def skip_trivia(self, pos: int) -> int:
        """Skip whitespace and comments."""
        text = self.text
        while pos < self.n:
            ch = text[pos]
            if ch.isspace():
                pos += 1
            elif text.startswith("//", pos):
                pos = self.skip_line_comment(pos)
            elif text.startswith("/*", pos):
                pos = self.skip_block_comment(pos)
            else:
                break
        return pos

    def skip_line_comment(self, pos: int) -> int:
        end = self.text.find("\n", pos)
        return self.n if end < 0 else end

    def skip_block_comment(self, pos: int) -> int:
        end = self.text.find("*/", pos + 2)
        if end < 0:
            raise self.error(pos, "unterminated comment")
        return end + 2

    def skip_string(self, pos: int) -> int:
        quote = self.text[pos]
        i = pos + 1
        while i < self.n:
            ch = self.text[i]
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                return i + 1
            if ch == "\n":
                break
            i += 1
        raise self.error(pos, "unterminated string literal")

    def skip_template(self, pos: int) -> int:
        i = pos + 1
        while i < self.n:
            ch = self.text[i]
            if ch == "\\":
                i += 2
            elif ch == "`":
                return i + 1
            elif ch == "$" and self.text.startswith("{", i + 1):
                saved = self.last
                self.last = (None, None, i + 2)
                i = self.scan_code(i + 2, closer="}")
                self.last = saved
            else:
                i += 1
        raise self.error(pos, "unterminated template literal")

    def skip_regex(self, pos: int) -> int:
        i = pos + 1
        in_class = False
        while i < self.n:
            ch = self.text[i]
            if ch == "\\":
                i += 2
                continue
            if ch == "\n":
                break
            if in_class:
                if ch == "]":
                    in_class = False
            elif ch == "[":
                in_class = True
            elif ch == "/":
                i += 1
                while i < self.n and self.text[i].isalpha():
                    i += 1
                return i
            i += 1
        raise self.error(pos, "unterminated regular expression")

    def statement_end(self, pos: int) -> int:
        """Extend past an optional ';' on the same line."""
        p = pos
        while p < self.n and self.text[p] in " \t":
            p += 1
        if p < self.n and self.text[p] == ";":
            return p + 1
        return pos

    def add_node(self, start: int, end: int, node: ImportNode) -> int:
        node.line = self.text.count("\n", 0, start) + 1
        self.nodes.append((start, end, node))
        return end

    def string_at(self, pos: int) -> Optional[Tuple[int, str, str]]:
        """Return (end, quote, value) when a plain string literal starts at ``pos``."""
        if pos < self.n and self.text[pos] in _QUOTES:
            end = self.skip_string(pos)
            return end, self.text[pos], self.text[pos + 1:end - 1]
        return None

    # ----------------------------------------------------------- main loop

    def scan_code(self, pos: int, closer: Optional[str] = None) -> int:
        text = self.text
        stack: List[Tuple[str, int]] = []
        while pos < self.n:
            ch = text[pos]
            if ch.isspace():
                pos += 1
                continue
            if ch == "/":
                nxt = text[pos + 1:pos + 2]
                if nxt == "/":
                    pos = self.skip_line_comment(pos)
                elif nxt == "*":
                    pos = self.skip_block_comment(pos)
                elif self.regex_allowed():
                    pos = self.skip_regex(pos)
                    self.mark("value", None, pos)
                else:
                    pos += 1
                    self.mark("punct", "/", pos)
                continue
            if ch in _QUOTES:
                pos = self.skip_string(pos)
                self.mark("value", None, pos)
                continue
            if ch == "`":
                pos = self.skip_template(pos)
                self.mark("value", None, pos)
                continue
            if ch in "([{":
                stack.append((ch, pos))
                pos += 1
                self.mark("punct", ch, pos)
                continue
            if ch in ")]}":
                if not stack:
                    if closer == ch:
                        return pos + 1
                    raise self.error(pos, f"unbalanced '{ch}'")
                opener, _ = stack.pop()
                if _CLOSERS[ch] != opener:
                    raise self.error(pos, f"'{opener}' closed by '{ch}'")
                pos += 1
                self.mark("punct" if ch == "}" else "value", ch, pos)
                continue
            if ch == "<" and self.jsx and self.jsx_allowed():
                nxt = text[pos + 1:pos + 2]
                if nxt == ">" or (nxt and _is_ident_start(nxt)):
                    end = self.try_jsx(pos)
                    if end is not None:
                        pos = end
                        self.mark("value", None, pos)
                        continue
                pos += 1
                self.mark("punct", "<", pos)
                continue
            if _is_ident_start(ch):
                end = pos
                while end < self.n and _is_ident_char(text[end]):
                    end += 1
                word = text[pos:end]
                handled = None
                if not self.after_dot():
                    if word == "import":
                        handled = self.scan_import(pos, end)
                    elif word == "export":
                        handled = self.scan_export_from(pos, end)
                    elif word == "require":
                        handled = self.scan_call(pos, end, ImportKind.REQUIRE)
                if handled is not None:
                    pos = handled
                else:
                    pos = end
                    self.mark("word", word, pos)
                continue
            if ch.isdigit():
                end = pos
                while end < self.n and (text[end].isalnum() or text[end] in "._"):
                    end += 1
                pos = end
                self.mark("value", None, pos)
                continue
            pos += 1
            self.mark("punct", ch, pos)

        if stack:
            opener, where = stack[-1]
            raise self.error(where, f"unclosed '{opener}'")
        if closer is not None:
            raise self.error(pos, f"missing '{closer}'")
        return pos

    # -------------------------------------------------------------- imports

    def scan_import(self, start: int, kw_end: int) -> Optional[int]:
        p = self.skip_trivia(kw_end)
        ch = self.text[p] if p < self.n else ""
        if ch == "(":
            return self.scan_call(start, kw_end, ImportKind.DYNAMIC)
        if ch == "." or not self.at_statement_start(start):
            return None
        literal = self.string_at(p)
        if literal is not None:
            s_end, quote, spec = literal
            end = self.statement_end(s_end)
            node = ImportNode(
                ImportKind.SIDE_EFFECT, "import", "", self.text[kw_end:p],
                quote, spec, self.text[s_end:end],
            )
            self.mark("punct", ";", end)
            return self.add_node(start, end, node)

        i = kw_end
        depth = 0
        seen_binding = False
        while True:
            i = self.skip_trivia(i)
            if i >= self.n:
                raise self.error(start, "malformed import statement")
            ch = self.text[i]
            if ch == "{":
                depth += 1
                seen_binding = True
                i += 1
            elif ch == "}":
                depth -= 1
                if depth < 0:
                    raise self.error(start, "malformed import statement")
                i += 1
            elif ch in ",*":
                seen_binding = True
                i += 1
            elif _is_ident_start(ch):
                w_end = i
                while w_end < self.n and _is_ident_char(self.text[w_end]):
                    w_end += 1
                if self.text[i:w_end] == "from" and depth == 0 and seen_binding:
                    q = self.skip_trivia(w_end)
                    literal = self.string_at(q)
                    if literal is None:
                        raise self.error(start, "malformed import statement")
                    s_end, quote, spec = literal
                    end = self.statement_end(s_end)
                    node = ImportNode(
                        ImportKind.STATIC, "import", self.text[kw_end:i], self.text[i:q],
                        quote, spec, self.text[s_end:end],
                    )
                    self.mark("punct", ";", end)
                    return self.add_node(start, end, node)
                seen_binding = True
                i = w_end
            elif ch in ";" or ch in _QUOTES:
                raise self.error(start, "malformed import statement")
            else:
                # import x = require(...), object keys named import, ...
                return None

    def scan_export_from(self, start: int, kw_end: int) -> Optional[int]:
        if not self.at_statement_start(start):
            return None
        text = self.text
        p = self.skip_trivia(kw_end)
        if text.startswith("type", p) and not _is_ident_char(text[p + 4:p + 5] or " "):
            p = self.skip_trivia(p + 4)
        if p >= self.n:
            return None
        if text[p] == "{":
            close = text.find("}", p)
            if close < 0:
                return None
            after = close + 1
        elif text[p] == "*":
            after = p + 1
            q = self.skip_trivia(after)
            if text.startswith("as", q) and not _is_ident_char(text[q + 2:q + 3] or " "):
                r = self.skip_trivia(q + 2)
                while r < self.n and _is_ident_char(text[r]):
                    r += 1
                after = r
        else:
            return None

        q = self.skip_trivia(after)
        if not (text.startswith("from", q) and not _is_ident_char(text[q + 4:q + 5] or " ")):
            return None
        r = self.skip_trivia(q + 4)
        literal = self.string_at(r)
        if literal is None:
            raise self.error(start, "malformed export statement")
        s_end, quote, spec = literal
        end = self.statement_end(s_end)
        node = ImportNode(
            ImportKind.EXPORT_FROM, "export", text[kw_end:q], text[q:r],
            quote, spec, text[s_end:end],
        )
        self.mark("punct", ";", end)
        return self.add_node(start, end, node)

    def scan_call(self, start: int, kw_end: int, kind: ImportKind) -> Optional[int]:
        """``import('x')`` / ``require('x')`` with a plain string argument."""
        p = self.skip_trivia(kw_end)
        if p >= self.n or self.text[p] != "(":
            return None
        q = self.skip_trivia(p + 1)
        literal = self.string_at(q)
        if literal is None:
            return None
        s_end, quote, spec = literal
        r = self.skip_trivia(s_end)
        if r >= self.n or self.text[r] != ")":
            return None
        node = ImportNode(kind, self.text[start:q], "", "", quote, spec, self.text[s_end:r + 1])
        self.mark("value", None, r + 1)
        return self.add_node(start, r + 1, node)

    # ------------------------------------------------------------------ jsx

    def try_jsx(self, pos: int) -> Optional[int]:
        saved_last = self.last
        saved_nodes = len(self.nodes)
        try:
            return self.scan_jsx_element(pos)
        except (_NotJsx, ParseError):
            self.last = saved_last
            del self.nodes[saved_nodes:]
            return None

    def scan_jsx_element(self, pos: int) -> int:
        text = self.text
        pos += 1
        if text.startswith(">", pos):
            return self.scan_jsx_children(pos + 1, "")
        name_end = pos
        while name_end < self.n and (_is_ident_char(text[name_end]) or text[name_end] in ".:-"):
            name_end += 1
        name = text[pos:name_end]
        if not name:
            raise _NotJsx()
        pos = name_end
        while True:
            while pos < self.n and text[pos].isspace():
                pos += 1
            if pos >= self.n:
                raise _NotJsx()
            ch = text[pos]
            if text.startswith("/>", pos):
                return pos + 2
            if ch == ">":
                return self.scan_jsx_children(pos + 1, name)
            if ch == "{":
                self.last = (None, None, pos + 1)
                pos = self.scan_code(pos + 1, closer="}")
            elif ch in _QUOTES:
                end = text.find(ch, pos + 1)
                if end < 0:
                    raise _NotJsx()
                pos = end + 1
            elif ch == "=":
                pos += 1
            elif _is_ident_start(ch):
                while pos < self.n and (_is_ident_char(text[pos]) or text[pos] in "-:"):
                    pos += 1
            else:
                raise _NotJsx()

    def scan_jsx_children(self, pos: int, name: str) -> int:
        text = self.text
        while pos < self.n:
            ch = text[pos]
            if ch == "<":
                if text.startswith("</", pos):
                    end = text.find(">", pos)
                    if end < 0 or text[pos + 2:end].strip() != name:
                        raise _NotJsx()
                    return end + 1
                pos = self.scan_jsx_element(pos)
            elif ch == "{":
                self.last = (None, None, pos + 1)
                pos = self.scan_code(pos + 1, closer="}")
            elif ch == "}":
                raise _NotJsx()
            else:
                pos += 1
        raise _NotJsx()


def parse_module(path: str, text: str, *, component: Optional[str] = None) -> SourceModule:
    """Parse a script into a SourceModule.

    Raises:
        ParseError: Unterminated strings, comments or templates, unbalanced
            brackets or a malformed import/export statement.
    """
    ext = posixpath.splitext(path)[1].lower()
    scanner = _Scanner(path, text, jsx=ext in JSX_EXTENSIONS, component=component)
    scanner.scan_code(0)

    module = SourceModule(path)
    cursor = 0
    for start, end, node in scanner.nodes:
        if start > cursor:
            module.segments.append(text[cursor:start])
        module.segments.append(node)
        cursor = end
    if cursor < len(text):
        module.segments.append(text[cursor:])
    return module


def check_stylesheet(path: str, text: str, *, component: Optional[str] = None) -> None:
    """Check a stylesheet for unterminated comments/strings and unbalanced braces."""
    line_comments = posixpath.splitext(path)[1].lower() in (".scss", ".sass", ".less")
    depth = 0
    parens = 0
    i = 0
    n = len(text)

    def fail(pos: int, cause: str) -> ParseError:
        return ParseError(path, cause, line=text.count("\n", 0, pos) + 1, component=component)

    while i < n:
        ch = text[i]
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end < 0:
                raise fail(i, "unterminated comment")
            i = end + 2
            continue
        if line_comments and parens == 0 and text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end < 0 else end
            continue
        if ch in _QUOTES:
            j = i + 1
            while j < n and text[j] != ch:
                if text[j] == "\\":
                    j += 1
                elif text[j] == "\n":
                    raise fail(i, "unterminated string")
                j += 1
            if j >= n:
                raise fail(i, "unterminated string")
            i = j + 1
            continue
        if ch == "(":
            parens += 1
        elif ch == ")":
            parens = max(0, parens - 1)
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth < 0:
                raise fail(i, "unbalanced '}'")
        i += 1
    if depth:
        raise fail(n, "unclosed '{'")


def check_json(path: str, text: str, *, component: Optional[str] = None) -> None:
    try:
        json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(path, exc.msg, line=exc.lineno, component=component) from exc
