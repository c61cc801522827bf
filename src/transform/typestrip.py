"""Erase TypeScript-only syntax so a script runs as plain JavaScript.

Works on the token stream of the import scanner in ``transform.parser``
and only ever deletes text: interfaces, type aliases, ``declare``
statements, overload signatures, annotations, ``as``/``satisfies``
assertions, non-null ``!``, type parameters and arguments, ``implements``
clauses and TypeScript-only class member modifiers. Everything else is
kept byte-for-byte.

Enums, namespaces, parameter properties, decorators and
``import x = require()`` emit runtime code in TypeScript and have no
erasable form; they raise ``UnsupportedSyntax``.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from common.errors import UnsupportedSyntax
from transform.parser import JSX_EXTENSIONS, _Scanner

# Reserved words that never end an expression.
_KEYWORDS = {
    "return", "typeof", "case", "do", "else", "in", "of", "new", "delete", "void",
    "throw", "yield", "await", "instanceof", "export", "default", "extends",
    "implements", "import", "const", "let", "var", "if", "while", "for", "switch",
    "catch", "function", "class", "with", "try", "finally",
}
_TYPE_WORDS = {"void", "const", "this", "null", "undefined", "true", "false"}
_CONTROL = {"if", "while", "for", "switch", "with"}
_TS_MODIFIERS = {"public", "private", "protected", "readonly", "override"}
_MEMBER_MODIFIERS = _TS_MODIFIERS | {"static", "async", "get", "set", "abstract", "declare", "accessor"}
_EXPRESSION_START = set("(,=:[!&|?{};+-*%<>~^")
_JSX_NAME_RE = re.compile(r"[A-Za-z_$][\w$]*")

Edit = Tuple[int, int, str]


@dataclass(frozen=True)
class Token:
    kind: str  # punct, word, value or stmt (a whole import/export-from statement)
    value: Optional[str]
    start: int
    end: int

    def is_punct(self, *values: str) -> bool:
        return self.kind == "punct" and self.value in values

    def is_word(self, *values: str) -> bool:
        return self.kind == "word" and (not values or self.value in values)


class _NotType(Exception):
    """The tokens at a position do not form a type."""


class _TokenScanner(_Scanner):
    """Import scanner that also records every token, one list per code region.

    A region is the top level, one ``${}`` substitution or one JSX
    expression container; the enclosing region sees the template literal
    or JSX element as a single value token.
    """

    def __init__(self, path: str, text: str, *, jsx: bool, component: Optional[str]):
        super().__init__(path, text, jsx=jsx, component=component)
        self.regions: List[List[Token]] = []
        self.jsx_names: List[str] = []
        self.jsx_elements = 0
        self._open: List[List[Token]] = []

    def mark(self, kind: str, value: Optional[str], end: int) -> None:
        start = self.skip_trivia(self.last[2])
        recorded = "stmt" if kind == "punct" and value == ";" and end - start > 1 else kind
        self._open[-1].append(Token(recorded, value, start, end))
        super().mark(kind, value, end)

    def scan_code(self, pos: int, closer: Optional[str] = None) -> int:
        self._open.append([])
        try:
            return super().scan_code(pos, closer)
        finally:
            self.regions.append(self._open.pop())

    def try_jsx(self, pos: int) -> Optional[int]:
        saved_last = self.last
        saved_regions = len(self.regions)
        saved_names = len(self.jsx_names)
        end = super().try_jsx(pos)
        if end is None:
            del self.regions[saved_regions:]
            del self.jsx_names[saved_names:]
        else:
            self.jsx_elements += 1
            # The element token starts at its '<'.
            self.last = (saved_last[0], saved_last[1], pos)
        return end

    def scan_jsx_element(self, pos: int) -> int:
        match = _JSX_NAME_RE.match(self.text, pos + 1)
        if match:
            self.jsx_names.append(match.group())
        return super().scan_jsx_element(pos)


def _scan(path: str, text: str, component: Optional[str]) -> _TokenScanner:
    ext = posixpath.splitext(path)[1].lower()
    scanner = _TokenScanner(path, text, jsx=ext in JSX_EXTENSIONS, component=component)
    scanner.scan_code(0)
    return scanner


class _Stripper:
    """Collects the edits that erase type syntax from one region."""

    def __init__(self, scanner: _TokenScanner, tokens: List[Token], edits: List[Edit]):
        self.path = scanner.path
        self.component = scanner.component
        self.jsx = scanner.jsx
        self.text = scanner.text
        self.toks = tokens
        self.n = len(tokens)
        self.edits = edits
        self.match = self._match_brackets()

    def _match_brackets(self) -> Dict[int, int]:
        match: Dict[int, int] = {}
        stack: List[int] = []
        for index, tok in enumerate(self.toks):
            if tok.is_punct("(", "[", "{"):
                stack.append(index)
            elif tok.is_punct("}") or (tok.kind == "value" and tok.value in (")", "]")):
                if stack:
                    match[stack.pop()] = index
        return match

    # ------------------------------------------------------------- helpers

    def error(self, i: int, construct: str) -> UnsupportedSyntax:
        pos = self.toks[min(i, self.n - 1)].start if self.n else 0
        return UnsupportedSyntax(
            self.path, construct, line=self.text.count("\n", 0, pos) + 1, component=self.component
        )

    def is_punct(self, i: int, stop: int, *values: str) -> bool:
        return i < stop and self.toks[i].is_punct(*values)

    def is_word(self, i: int, stop: int, *values: str) -> bool:
        return i < stop and self.toks[i].is_word(*values)

    def newline_before(self, i: int) -> bool:
        return 0 < i < self.n and "\n" in self.text[self.toks[i - 1].end:self.toks[i].start]

    def after_dot(self, i: int) -> bool:
        return i > 0 and self.toks[i - 1].is_punct(".")

    def is_arrow(self, i: int, stop: int) -> bool:
        return (
            self.is_punct(i, stop, "=") and self.is_punct(i + 1, stop, ">")
            and self.toks[i].end == self.toks[i + 1].start
        )

    def ends_value(self, k: int, angle: bool = False) -> bool:
        if k < 0 or k >= self.n:
            return False
        tok = self.toks[k]
        if tok.kind == "value":
            return True
        if tok.kind == "word":
            return tok.value not in _KEYWORDS
        return tok.is_punct("}") or (angle and tok.is_punct(">"))

    def names_member(self, i: int, stop: int) -> bool:
        if i >= stop:
            return False
        tok = self.toks[i]
        if tok.kind == "word":
            return True
        if tok.kind == "value":
            return tok.value not in (")", "]")
        return tok.is_punct("[", "#", "*")

    def semicolon(self, i: int, stop: int) -> int:
        return i + 1 if self.is_punct(i, stop, ";") else i

    def cut(self, start: int, end: int) -> None:
        if end > start:
            self.edits.append((start, end, ""))

    def cut_tokens(self, a: int, b: int) -> None:
        """Delete tokens ``[a, b)`` and whatever lies between them."""
        if b > a:
            self.cut(self.toks[a].start, self.toks[b - 1].end)

    def cut_statement(self, a: int, b: int) -> None:
        """Delete tokens ``[a, b)``, taking the whole line when nothing else is on it."""
        text = self.text
        start = self.toks[a].start
        end = self.toks[b - 1].end
        line_start = text.rfind("\n", 0, start) + 1
        k = end
        while k < len(text) and text[k] in " \t":
            k += 1
        if not text[line_start:start].strip() and (k >= len(text) or text[k] in "\r\n"):
            start = line_start
            end = k + (2 if text.startswith("\r\n", k) else 1 if k < len(text) else 0)
        else:
            end = k
        self.cut(start, end)

    # --------------------------------------------------------------- types

    def skip_type(self, i: int, stop: int) -> int:
        i = self.union(i, stop)
        if self.is_word(i, stop, "extends") and not self.newline_before(i):
            try:
                j = self.union(i + 1, stop)
                if self.is_punct(j, stop, "?"):
                    j = self.skip_type(j + 1, stop)
                    if self.is_punct(j, stop, ":"):
                        return self.skip_type(j + 1, stop)
            except _NotType:
                pass
        return i

    def union(self, i: int, stop: int) -> int:
        if self.is_punct(i, stop, "|", "&"):
            i += 1
        i = self.postfix(self.primary(i, stop), stop)
        while self.is_punct(i, stop, "|", "&") and not self._doubled(i, stop):
            i = self.postfix(self.primary(i + 1, stop), stop)
        return i

    def _doubled(self, i: int, stop: int) -> bool:
        return (
            self.is_punct(i + 1, stop, self.toks[i].value)
            and self.toks[i].end == self.toks[i + 1].start
        )

    def postfix(self, i: int, stop: int) -> int:
        while self.is_punct(i, stop, "[") and i in self.match and not self.newline_before(i):
            i = self.match[i] + 1
        return i

    def qualified(self, i: int, stop: int) -> int:
        while self.is_punct(i, stop, ".") and self.is_word(i + 1, stop):
            i += 2
        return i

    def function_type(self, i: int, stop: int) -> int:
        """``(params) => T`` starting at the '('."""
        if not (self.is_punct(i, stop, "(") and i in self.match and self.is_arrow(self.match[i] + 1, stop)):
            raise _NotType()
        return self.skip_type(self.match[i] + 3, stop)

    def primary(self, i: int, stop: int) -> int:
        if i >= stop:
            raise _NotType()
        tok = self.toks[i]
        if tok.kind == "punct":
            if tok.value == "(" and i in self.match:
                after = self.match[i] + 1
                if self.is_arrow(after, stop):
                    return self.skip_type(after + 2, stop)
                return after
            if tok.value in ("{", "[") and i in self.match:
                return self.match[i] + 1
            if tok.value == "<":
                return self.function_type(self.type_params(i, stop), stop)
            if tok.value == "-" and i + 1 < stop and self.toks[i + 1].kind == "value":
                return i + 2
            raise _NotType()
        if tok.kind == "value":
            if tok.value in (")", "]"):
                raise _NotType()
            return self.qualified(i + 1, stop)
        if tok.kind != "word":
            raise _NotType()
        word = tok.value
        if word in ("keyof", "unique", "readonly") and i + 1 < stop and not self.newline_before(i + 1):
            return self.postfix(self.primary(i + 1, stop), stop)
        if word == "infer" and self.is_word(i + 1, stop):
            return i + 2
        if word == "typeof":
            if i + 1 >= stop or self.toks[i + 1].kind not in ("word", "value"):
                raise _NotType()
            j = self.qualified(i + 2, stop)
            if self.is_punct(j, stop, "<"):
                j = self.type_args(j, stop)
            return j
        if word == "new" or (word == "abstract" and self.is_word(i + 1, stop, "new")):
            j = i + 1 if word == "new" else i + 2
            if self.is_punct(j, stop, "<"):
                j = self.type_params(j, stop)
            return self.function_type(j, stop)
        if word == "asserts" and self.is_word(i + 1, stop) and not self.newline_before(i + 1):
            j = i + 2
            if self.is_word(j, stop, "is"):
                return self.skip_type(j + 1, stop)
            return j
        if word in _KEYWORDS and word not in _TYPE_WORDS:
            raise _NotType()
        j = self.qualified(i + 1, stop)
        if self.is_punct(j, stop, "<") and not self.newline_before(j):
            j = self.type_args(j, stop)
        if self.is_word(j, stop, "is") and not self.newline_before(j):
            return self.skip_type(j + 1, stop)
        return j

    def type_args(self, i: int, stop: int) -> int:
        j = i + 1
        while True:
            j = self.skip_type(j, stop)
            if self.is_punct(j, stop, ","):
                j += 1
                if self.is_punct(j, stop, ">"):
                    return j + 1
                continue
            if self.is_punct(j, stop, ">"):
                return j + 1
            raise _NotType()

    def type_params(self, i: int, stop: int) -> int:
        j = i + 1
        while True:
            while self.is_word(j, stop, "const", "in", "out") and self.is_word(j + 1, stop):
                j += 1
            if not self.is_word(j, stop):
                raise _NotType()
            j += 1
            if self.is_word(j, stop, "extends"):
                j = self.skip_type(j + 1, stop)
            if self.is_punct(j, stop, "="):
                j = self.skip_type(j + 1, stop)
            if self.is_punct(j, stop, ","):
                j += 1
                if self.is_punct(j, stop, ">"):
                    return j + 1
                continue
            if self.is_punct(j, stop, ">"):
                return j + 1
            raise _NotType()

    def optional(self, parse, i: int, stop: int) -> Optional[int]:
        try:
            return parse(i, stop)
        except _NotType:
            return None

    def required_type(self, i: int, stop: int) -> int:
        try:
            return self.skip_type(i, stop)
        except _NotType:
            raise self.error(i, "unrecognised type annotation") from None

    def required_type_params(self, i: int, stop: int) -> int:
        try:
            return self.type_params(i, stop)
        except _NotType:
            raise self.error(i, "unrecognised type parameters") from None

    # ---------------------------------------------------------- statements

    def run(self) -> None:
        self.walk(0, self.n, block=True)

    def walk(self, i: int, stop: int, block: bool = False) -> None:
        declaring = False
        while i < stop:
            tok = self.toks[i]
            if block and self.statement_start(i):
                declaring = False
                resumed = self.statement(i, stop)
                if resumed is not None:
                    i = resumed
                    continue
            if tok.kind == "word" and not self.after_dot(i):
                if tok.value in ("const", "let", "var"):
                    declaring = True
                    i = self.binding(i + 1, stop)
                    continue
                if tok.value == "function":
                    i = self.function(i, stop)
                    continue
                if tok.value == "class":
                    i = self.class_(i, stop)
                    continue
                if tok.value in ("as", "satisfies"):
                    resumed = self.assertion(i, stop)
                    if resumed is not None:
                        i = resumed
                        continue
            elif tok.kind == "punct":
                if tok.value == ";":
                    declaring = False
                elif tok.value == "," and declaring:
                    i = self.binding(i + 1, stop)
                    continue
                elif tok.value == "!" and self.non_null(i, stop):
                    self.cut_tokens(i, i + 1)
                elif tok.value == "<":
                    resumed = self.angle(i, stop)
                    if resumed is not None:
                        i = resumed
                        continue
                elif tok.value == "(":
                    i = self.paren(i, stop, self.toks[i - 1] if i else None)
                    continue
                elif tok.value in ("{", "[") and i in self.match:
                    self.walk(i + 1, self.match[i], block=tok.value == "{")
                    i = self.match[i] + 1
                    continue
            i += 1

    def statement_start(self, i: int) -> bool:
        if i == 0:
            return True
        prev = self.toks[i - 1]
        if prev.kind == "stmt" or prev.is_punct(";", "{", "}"):
            return True
        return self.newline_before(i) and self.ends_value(i - 1)

    def statement(self, i: int, stop: int) -> Optional[int]:
        """Handle a declaration-level construct at ``i``; None when there is none."""
        j = i
        if self.is_word(j, stop, "export"):
            j += 1
            if self.is_punct(j, stop, "="):
                raise self.error(i, "'export =' assignment")
            if self.is_punct(j, stop, "{"):
                return self.export_list(i, j, stop)
            if self.is_word(j, stop, "default"):
                j += 1
        if j >= stop:
            return None
        tok = self.toks[j]
        if tok.is_punct("@") and self.is_word(j + 1, stop):
            raise self.error(j, "decorator")
        if tok.kind != "word":
            return None
        word = tok.value
        nxt = self.toks[j + 1] if j + 1 < stop else None
        if nxt is None or self.newline_before(j + 1):
            return None
        if word == "type":
            if nxt.is_punct("{") and j > i and j + 1 in self.match:
                end = self.semicolon(self.match[j + 1] + 1, stop)
                self.cut_statement(i, end)
                return end
            if nxt.kind == "word" and self.is_punct(j + 2, stop, "=", "<"):
                return self.type_alias(i, j, stop)
            return None
        if word == "interface" and nxt.kind == "word":
            return self.interface(i, j, stop)
        if word == "declare" and nxt.kind == "word":
            end = self.declaration_end(j + 1, stop)
            self.cut_statement(i, end)
            return end
        if word == "abstract" and nxt.is_word("class"):
            self.cut(tok.start, nxt.start)
            return j + 1
        if (word == "enum" and nxt.kind == "word") or (word == "const" and nxt.is_word("enum")):
            raise self.error(j, "enum declaration")
        if word in ("namespace", "module") and (nxt.kind == "word" or (word == "module" and nxt.kind == "value")):
            raise self.error(j, f"{word} declaration")
        if word == "import" and nxt.kind == "word" and self.is_punct(j + 2, stop, "="):
            raise self.error(j, "'import ... =' declaration")
        if word == "function":
            end = self.overload(j, stop)
            if end is not None:
                self.cut_statement(i, end)
                return end
        return None

    def export_list(self, i: int, brace: int, stop: int) -> Optional[int]:
        """``export { type A, B }``: drop type-only names."""
        close = self.match.get(brace)
        if close is None:
            return None
        kept = []
        dropped = False
        for a, b in self.split_commas(brace + 1, close):
            if a == b:
                continue
            if b - a >= 2 and self.toks[a].is_word("type") and self.toks[a + 1].kind == "word" \
                    and not self.toks[a + 1].is_word("as"):
                dropped = True
                continue
            kept.append(self.text[self.toks[a].start:self.toks[b - 1].end])
        end = self.semicolon(close + 1, stop)
        if not dropped:
            return close + 1
        if not kept:
            self.cut_statement(i, end)
        else:
            self.edits.append((self.toks[brace].end, self.toks[close].start, f" {', '.join(kept)} "))
        return end

    def split_commas(self, i: int, stop: int) -> List[Tuple[int, int]]:
        parts = []
        begin = i
        while i < stop:
            tok = self.toks[i]
            if tok.is_punct("(", "[", "{") and i in self.match:
                i = self.match[i] + 1
                continue
            if tok.is_punct(","):
                parts.append((begin, i))
                begin = i + 1
            i += 1
        parts.append((begin, stop))
        return parts

    def type_alias(self, i: int, j: int, stop: int) -> int:
        k = j + 2
        if self.is_punct(k, stop, "<"):
            k = self.required_type_params(k, stop)
        if not self.is_punct(k, stop, "="):
            raise self.error(j, "malformed type alias")
        end = self.semicolon(self.required_type(k + 1, stop), stop)
        self.cut_statement(i, end)
        return end

    def interface(self, i: int, j: int, stop: int) -> int:
        k = j + 2
        if self.is_punct(k, stop, "<"):
            k = self.required_type_params(k, stop)
        if self.is_word(k, stop, "extends"):
            k = self.required_type(k + 1, stop)
            while self.is_punct(k, stop, ","):
                k = self.required_type(k + 1, stop)
        if not (self.is_punct(k, stop, "{") and k in self.match):
            raise self.error(j, "malformed interface")
        end = self.semicolon(self.match[k] + 1, stop)
        self.cut_statement(i, end)
        return end

    def declaration_end(self, i: int, stop: int) -> int:
        """End of an ambient ``declare`` statement starting at ``i``."""
        begin = i
        annotated = False
        while i < stop:
            tok = self.toks[i]
            if tok.is_punct(";"):
                return i + 1
            if i > begin and self.statement_start(i) and not self.toks[i - 1].is_punct("{"):
                return i
            if tok.is_punct(":", "="):
                annotated = True
            if tok.is_punct("{") and i in self.match:
                if not annotated:
                    return self.semicolon(self.match[i] + 1, stop)
                i = self.match[i] + 1
                continue
            if tok.is_punct("(", "[") and i in self.match:
                i = self.match[i] + 1
                continue
            i += 1
        return stop

    def overload(self, j: int, stop: int) -> Optional[int]:
        """End of a bodiless ``function`` signature at ``j``; None when it has a body."""
        k = j + 1
        if self.is_punct(k, stop, "*"):
            k += 1
        if not self.is_word(k, stop):
            return None
        k += 1
        if self.is_punct(k, stop, "<"):
            k = self.optional(self.type_params, k, stop)
            if k is None:
                return None
        if not (self.is_punct(k, stop, "(") and k in self.match):
            return None
        k = self.match[k] + 1
        if self.is_punct(k, stop, ":"):
            k = self.optional(self.skip_type, k + 1, stop)
            if k is None:
                return None
        if self.is_punct(k, stop, "{"):
            return None
        return self.semicolon(k, stop)

    # --------------------------------------------------------- expressions

    def binding(self, i: int, stop: int) -> int:
        """Strip the annotation of one declarator; returns where to continue."""
        if i >= stop:
            return i
        tok = self.toks[i]
        if tok.kind == "word":
            j = i + 1
        elif tok.is_punct("{", "[") and i in self.match:
            self.walk(i + 1, self.match[i])
            j = self.match[i] + 1
        else:
            return i
        start = j
        if self.is_punct(j, stop, "!") and self.is_punct(j + 1, stop, ":"):
            j += 1
        if self.is_punct(j, stop, ":"):
            j = self.required_type(j + 1, stop)
        self.cut_tokens(start, j)
        return j

    def function(self, i: int, stop: int) -> int:
        j = i + 1
        if self.is_punct(j, stop, "*"):
            j += 1
        if self.is_word(j, stop):
            j += 1
        if self.is_punct(j, stop, "<"):
            end = self.optional(self.type_params, j, stop)
            if end is None:
                return j
            self.cut_tokens(j, end)
            j = end
        if not (self.is_punct(j, stop, "(") and j in self.match):
            return j
        close = self.match[j]
        self.params(j, close)
        j = close + 1
        if self.is_punct(j, stop, ":"):
            end = self.required_type(j + 1, stop)
            self.cut_tokens(j, end)
            j = end
        if self.is_punct(j, stop, "{") and j in self.match:
            self.walk(j + 1, self.match[j], block=True)
            return self.match[j] + 1
        return j

    def params(self, open_: int, close: int) -> None:
        i = open_ + 1
        while i < close:
            tok = self.toks[i]
            if tok.is_punct("@"):
                raise self.error(i, "decorator")
            if tok.is_word(*_TS_MODIFIERS) and (self.is_word(i + 1, close) or self.is_punct(i + 1, close, "{", "[")):
                raise self.error(i, "parameter property")
            j = i
            while self.is_punct(j, close, "."):
                j += 1
            if self.is_word(j, close):
                j += 1
            elif self.is_punct(j, close, "{", "[") and j in self.match:
                self.walk(j + 1, self.match[j])
                j = self.match[j] + 1
            else:
                self.walk(i, close)
                return
            this_param = tok.is_word("this") and j == i + 1
            typed = j
            if self.is_punct(j, close, "?"):
                j += 1
            if self.is_punct(j, close, ":"):
                j = self.required_type(j + 1, close)
            if not this_param:
                self.cut_tokens(typed, j)
            if self.is_punct(j, close, "="):
                end = self.expression_end(j + 1, close)
                self.walk(j + 1, end)
                j = end
            if this_param:
                if self.is_punct(j, close, ",") and j + 1 < close:
                    self.cut(tok.start, self.toks[j + 1].start)
                else:
                    self.cut_tokens(i, j + 1 if self.is_punct(j, close, ",") else j)
            if self.is_punct(j, close, ","):
                j += 1
            elif j < close:
                self.walk(j, close)
                return
            i = j

    def expression_end(self, i: int, stop: int) -> int:
        while i < stop:
            tok = self.toks[i]
            if tok.is_punct(","):
                return i
            if tok.is_punct("(", "[", "{") and i in self.match:
                i = self.match[i] + 1
                continue
            i += 1
        return stop

    def names_method(self, prev: Optional[Token]) -> bool:
        if prev is None:
            return False
        if prev.kind == "word":
            return prev.value not in _KEYWORDS
        return prev.kind == "value"

    def paren(self, i: int, stop: int, prev: Optional[Token]) -> int:
        close = self.match.get(i)
        if close is None:
            return i + 1
        after = close + 1
        is_params = False
        if prev is not None and prev.is_word(*_CONTROL):
            pass
        elif prev is not None and prev.is_word("catch"):
            is_params = True
        elif self.is_arrow(after, stop):
            is_params = True
        elif self.is_punct(after, stop, ":"):
            end = self.optional(self.skip_type, after + 1, stop)
            if end is not None and (
                self.is_arrow(end, stop) or (self.is_punct(end, stop, "{") and self.names_method(prev))
            ):
                self.params(i, close)
                self.cut_tokens(after, end)
                return end
        elif self.is_punct(after, stop, "{") and self.names_method(prev):
            is_params = True
        if is_params:
            self.params(i, close)
        else:
            self.walk(i + 1, close)
        return after

    def angle(self, i: int, stop: int) -> Optional[int]:
        prev = self.toks[i - 1] if i else None
        if prev is not None and prev.kind == "word" and prev.value not in _KEYWORDS:
            # foo<T>(...) / new Map<K, V>() / method<T>(...) {}
            end = self.optional(self.type_args, i, stop) or self.optional(self.type_params, i, stop)
            if end is None:
                return None
            if self.is_punct(end, stop, "("):
                self.cut_tokens(i, end)
                return self.paren(end, stop, prev)
            if end < stop and self.toks[end].kind == "value" and self.text.startswith("`", self.toks[end].start):
                self.cut_tokens(i, end)
                return end
            return None
        if prev is None or (prev.kind == "punct" and prev.value in _EXPRESSION_START) or prev.is_word(*_KEYWORDS):
            end = self.optional(self.type_params, i, stop)
            if end is not None and self.is_punct(end, stop, "("):
                self.cut_tokens(i, end)
                return self.paren(end, stop, None)
            if not self.jsx:
                # <T>value assertion
                end = self.optional(self.type_args, i, stop)
                if end is not None:
                    self.cut_tokens(i, end)
                    return end
        return None

    def assertion(self, i: int, stop: int) -> Optional[int]:
        if not self.ends_value(i - 1):
            return None
        prev = self.toks[i - 1]
        if prev.is_punct("}") and self.newline_before(i):
            return None
        end = self.optional(self.skip_type, i + 1, stop)
        if end is None:
            return None
        self.cut(prev.end, self.toks[end - 1].end)
        return end

    def non_null(self, i: int, stop: int) -> bool:
        if i == 0:
            return False
        prev, tok = self.toks[i - 1], self.toks[i]
        if prev.end != tok.start or prev.kind not in ("value", "word") or not self.ends_value(i - 1):
            return False
        # != and !==
        return not (self.is_punct(i + 1, stop, "=") and self.toks[i + 1].start == tok.end)

    # ------------------------------------------------------------- classes

    def class_(self, i: int, stop: int) -> int:
        j = i + 1
        if self.is_word(j, stop) and not self.is_word(j, stop, "extends", "implements"):
            j += 1
        if self.is_punct(j, stop, "<"):
            end = self.optional(self.type_params, j, stop)
            if end is not None:
                self.cut_tokens(j, end)
                j = end
        if self.is_word(j, stop, "extends"):
            j += 1
            while j < stop and not self.is_punct(j, stop, "{") and not self.is_word(j, stop, "implements"):
                tok = self.toks[j]
                if tok.is_punct("<"):
                    end = self.optional(self.type_args, j, stop)
                    if end is not None:
                        self.cut_tokens(j, end)
                        j = end
                        continue
                if tok.is_punct("(", "[") and j in self.match:
                    self.walk(j + 1, self.match[j])
                    j = self.match[j] + 1
                    continue
                j += 1
        if self.is_word(j, stop, "implements"):
            k = self.required_type(j + 1, stop)
            while self.is_punct(k, stop, ","):
                k = self.required_type(k + 1, stop)
            self.cut(self.toks[j - 1].end, self.toks[k - 1].end)
            j = k
        if self.is_punct(j, stop, "{") and j in self.match:
            close = self.match[j]
            i = j + 1
            while i < close:
                i = self.member(i, close)
            return close + 1
        return j

    def member(self, i: int, stop: int) -> int:
        start = i
        tok = self.toks[i]
        if tok.is_punct(";"):
            return i + 1
        if tok.is_punct("@"):
            raise self.error(i, "decorator")
        if tok.is_word("static") and self.is_punct(i + 1, stop, "{") and i + 1 in self.match:
            self.walk(i + 2, self.match[i + 1], block=True)
            return self.match[i + 1] + 1
        modifiers = []
        while self.is_word(i, stop, *_MEMBER_MODIFIERS) and self.names_member(i + 1, stop):
            modifiers.append(i)
            i += 1
        words = {self.toks[m].value for m in modifiers}
        if words & {"declare", "abstract"}:
            end = self.member_end(i + 1, stop)
            self.cut_statement(start, end)
            return end
        for m in modifiers:
            if self.toks[m].value in _TS_MODIFIERS:
                self.cut(self.toks[m].start, self.toks[m + 1].start)
        if self.is_punct(i, stop, "[") and self.is_word(i + 1, stop) and self.is_punct(i + 2, stop, ":"):
            # index signature
            end = self.member_end(i + 1, stop)
            self.cut_statement(start, end)
            return end
        if self.is_punct(i, stop, "*", "#"):
            i += 1
        if i >= stop:
            return stop
        tok = self.toks[i]
        if tok.kind in ("word", "value"):
            i += 1
        elif tok.is_punct("[") and i in self.match:
            self.walk(i + 1, self.match[i])
            i = self.match[i] + 1
        else:
            return i + 1
        if self.is_punct(i, stop, "?", "!"):
            self.cut_tokens(i, i + 1)
            i += 1
        if self.is_punct(i, stop, "<"):
            end = self.optional(self.type_params, i, stop)
            if end is not None:
                self.cut_tokens(i, end)
                i = end
        if self.is_punct(i, stop, "(") and i in self.match:
            close = self.match[i]
            self.params(i, close)
            j = close + 1
            if self.is_punct(j, stop, ":"):
                end = self.required_type(j + 1, stop)
                self.cut_tokens(j, end)
                j = end
            if self.is_punct(j, stop, "{") and j in self.match:
                self.walk(j + 1, self.match[j], block=True)
                return self.match[j] + 1
            # overload or optional method signature
            end = self.member_end(j, stop)
            self.cut_statement(start, end)
            return end
        if self.is_punct(i, stop, ":"):
            end = self.required_type(i + 1, stop)
            self.cut_tokens(i, end)
            i = end
        if self.is_punct(i, stop, "="):
            end = self.member_end(i + 1, stop)
            self.walk(i + 1, end)
            return end
        return i if i > start else i + 1

    def member_end(self, i: int, stop: int) -> int:
        while i < stop:
            tok = self.toks[i]
            if tok.is_punct(";"):
                return i + 1
            if self.newline_before(i) and self.ends_value(i - 1, angle=True) and self.names_member(i, stop):
                return i
            if tok.is_punct("(", "[", "{") and i in self.match:
                i = self.match[i] + 1
                continue
            i += 1
        return stop


def _apply(text: str, edits: List[Edit]) -> str:
    out = []
    cursor = 0
    for start, end, replacement in sorted(edits, key=lambda e: (e[0], -e[1])):
        if start < cursor:
            # Nested in an earlier edit.
            if end > cursor and not replacement:
                cursor = end
            continue
        out.append(text[cursor:start])
        out.append(replacement)
        cursor = end
    out.append(text[cursor:])
    return "".join(out)


def strip_types(path: str, text: str, *, component: Optional[str] = None) -> str:
    """Return ``text`` with TypeScript-only syntax removed.

    Raises:
        ParseError: The script is malformed.
        UnsupportedSyntax: The script uses TypeScript that emits runtime code.
    """
    scanner = _scan(path, text, component)
    edits: List[Edit] = []
    for tokens in scanner.regions:
        _Stripper(scanner, tokens, edits).run()
    return _apply(text, edits) if edits else text


def referenced_names(path: str, text: str, *, component: Optional[str] = None) -> Set[str]:
    """Identifiers a script refers to outside its import statements.

    Property names after '.' are left out. A script containing JSX refers
    to ``React``, the classic JSX factory.
    """
    scanner = _scan(path, text, component)
    names = set(scanner.jsx_names)
    if scanner.jsx_elements:
        names.add("React")
    for tokens in scanner.regions:
        for index, tok in enumerate(tokens):
            if tok.kind != "word":
                continue
            if index and tokens[index - 1].is_punct("."):
                # "...rest" is a reference, "a.b" is not
                if not (index > 1 and tokens[index - 2].is_punct(".")):
                    continue
            names.add(tok.value)
    return names
