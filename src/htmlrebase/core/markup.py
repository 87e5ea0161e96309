"""
Markup tokenization and serialization.

MarkupTokenizer is an HTMLParser that reports tokens with their absolute
offsets in the input instead of building a tree, so that untouched parts of
the document can be copied back out byte for byte. A token's raw text runs
from its start to the start of the next token; anything the parser skips
silently (stray ``</>`` and the like) stays attached to the preceding token.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Callable, List, Optional, Tuple

from bs4.dammit import EntitySubstitution


START_TAG = "startTag"
END_TAG = "endTag"
TEXT = "text"
DOCTYPE = "doctype"
COMMENT = "comment"
OTHER = "other"


@dataclass
class Token:
    kind: str
    line: int           # 1-based
    column: int         # 0-based
    start: int          # absolute offset in the input
    end: Optional[int] = None       # end of the token's own text
    next_start: Optional[int] = None
    end_line: Optional[int] = None


@dataclass
class StartTagToken(Token):
    name: str = ""
    attrs: List[List[Optional[str]]] = field(default_factory=list)
    self_closing: bool = False
    raw: str = ""
    modified: bool = False


@dataclass
class EndTagToken(Token):
    name: str = ""


@dataclass
class TextToken(Token):
    text: Optional[str] = None      # replacement text, None keeps the raw input


class MarkupTokenizer(HTMLParser):
    """
    Feeds markup through HTMLParser and hands each finished token to
    ``on_token`` in document order.

    A token is finished once the next one starts (or the input is closed),
    since that is what fixes its raw extent.
    """

    def __init__(self, source: str, on_token: Callable[[Token], None]):
        super().__init__(convert_charrefs=True)
        self.source = source
        self.on_token = on_token
        self._line_starts = [0] + [i + 1 for i, ch in enumerate(source) if ch == "\n"]
        self._pending: Optional[Token] = None

    # -- positions --

    def _here(self) -> Tuple[int, int, int]:
        line, column = self.getpos()
        return line, column, self._line_starts[line - 1] + column

    def _line_of(self, offset: int) -> int:
        return bisect.bisect_right(self._line_starts, offset)

    # -- token bookkeeping --

    def _push(self, token: Token) -> None:
        pending = self._pending
        if pending is not None:
            if pending.kind == TEXT and token.kind == TEXT:
                # HTMLParser may split one run of text into several calls
                return
            self._finish(pending, token.start)
        self._pending = token

    def _finish(self, token: Token, next_start: int) -> None:
        if token.end is None:
            token.end = next_start
        token.next_start = next_start
        token.end_line = self._line_of(token.end)
        self.on_token(token)

    def close(self):
        super().close()
        if self._pending is not None:
            self._finish(self._pending, len(self.source))
            self._pending = None

    # -- HTMLParser callbacks --

    def handle_starttag(self, tag, attrs):
        self._start_tag(tag, attrs, self_closing=False)

    def handle_startendtag(self, tag, attrs):
        self._start_tag(tag, attrs, self_closing=True)

    def _start_tag(self, tag, attrs, self_closing):
        line, column, start = self._here()
        raw = self.get_starttag_text() or ""
        self._push(StartTagToken(
            START_TAG, line, column, start,
            end=start + len(raw),
            name=tag,
            attrs=[[name, value] for name, value in attrs],
            self_closing=self_closing,
            raw=raw,
        ))

    def handle_endtag(self, tag):
        line, column, start = self._here()
        self._push(EndTagToken(END_TAG, line, column, start, name=tag))

    def handle_data(self, data):
        line, column, start = self._here()
        self._push(TextToken(TEXT, line, column, start))

    def handle_entityref(self, name):
        self.handle_data(name)

    def handle_charref(self, name):
        self.handle_data(name)

    def handle_comment(self, data):
        line, column, start = self._here()
        self._push(Token(COMMENT, line, column, start))

    def handle_decl(self, decl):
        line, column, start = self._here()
        kind = DOCTYPE if decl.lower().startswith("doctype") else OTHER
        self._push(Token(kind, line, column, start))

    def handle_pi(self, data):
        line, column, start = self._here()
        self._push(Token(OTHER, line, column, start))

    def unknown_decl(self, data):
        line, column, start = self._here()
        self._push(Token(OTHER, line, column, start))


def serialize_start_tag(token: StartTagToken) -> str:
    """
    Serialize a start tag from its (possibly mutated) attributes.

    Tag and attribute names keep the case they had in the input where it
    can be recovered; values are escaped and quoted the way BeautifulSoup
    writes them.
    """
    name = token.raw[1:1 + len(token.name)] if token.raw else token.name
    parts = ["<", name]
    for attr_name, value in token.attrs:
        if value is None:
            parts.append(f" {attr_name}")
        else:
            quoted = EntitySubstitution.substitute_xml(value, make_quoted_attribute=True)
            parts.append(f" {attr_name}={quoted}")
    parts.append("/>" if token.self_closing else ">")
    return "".join(parts)


def render_token(token: Token, source: str) -> str:
    """Output text for a finished token, including anything up to the next token."""
    trailing = source[token.end:token.next_start]
    if isinstance(token, StartTagToken) and token.modified:
        return serialize_start_tag(token) + trailing
    if isinstance(token, TextToken) and token.text is not None:
        return token.text + trailing
    return source[token.start:token.next_start]
