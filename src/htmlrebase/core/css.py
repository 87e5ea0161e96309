"""
CSS url() rebasing.

Rewrites relative ``url(...)`` and ``@import "..."`` references in a
stylesheet against the source file that contains them, as recovered from
the stylesheet's source map. Only the reference text is replaced; the rest
of the stylesheet is kept byte for byte.
"""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .errors import NoOwningRegionError
from .events import REBASE_EVENT, EventSource, RebaseEvent
from .paths import PathResolver, RebaseHandler
from .regions import RegionIndex, build_regions
from htmlrebase.utils.sourcemaps import load_mappings


CSS_COMMENT_RE = re.compile(r"/\*.*?\*/", re.S)
CSS_URL_RE = re.compile(
    r"url\(\s*(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)'|(?P<bare>[^)\s'\"]+))\s*\)",
    re.I,
)
CSS_IMPORT_RE = re.compile(r"@import\s+(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)')", re.I)

# Characters that force quoting of an unquoted url() argument
_NEEDS_QUOTES_RE = re.compile(r"[\s()'\"\\]")


@dataclass
class CssReference:
    value: str
    start: int          # offset of the reference value
    end: int
    quote: str          # '"', "'" or '' for unquoted url()
    offset: int         # offset of the url( / @import token, used for lookup


@dataclass
class CssResult:
    css: bytes
    map: bytes


def find_references(css_text: str) -> List[CssReference]:
    """Return url() and @import references outside comments, in document order."""
    comments = [(m.start(), m.end()) for m in CSS_COMMENT_RE.finditer(css_text)]

    def in_comment(pos: int) -> bool:
        return any(start <= pos < end for start, end in comments)

    refs: List[CssReference] = []
    for pattern in (CSS_URL_RE, CSS_IMPORT_RE):
        for match in pattern.finditer(css_text):
            if in_comment(match.start()):
                continue
            for group, quote in (("dq", '"'), ("sq", "'"), ("bare", "")):
                if group in pattern.groupindex and match.group(group) is not None:
                    refs.append(CssReference(
                        value=match.group(group),
                        start=match.start(group),
                        end=match.end(group),
                        quote=quote,
                        offset=match.start(),
                    ))
                    break
    refs.sort(key=lambda r: r.start)
    return refs


class _LineIndex:
    def __init__(self, text: str):
        self.starts = [0] + [i + 1 for i, ch in enumerate(text) if ch == "\n"]

    def position(self, offset: int) -> Tuple[int, int]:
        line = bisect.bisect_right(self.starts, offset)
        return line, offset - self.starts[line - 1]


class CssRebaser(EventSource):
    """
    Rebases the assets referenced by a stylesheet.

    Usage::

        rebaser = CssRebaser(map_bytes, rebase=hook)
        rebaser.on("rebase", listener)
        result = await rebaser.rebase(css_bytes)
    """

    def __init__(self, map: bytes, rebase: Optional[RebaseHandler] = None):
        super().__init__()
        self.map = map
        self.paths = PathResolver(rebase)
        self.logger = logging.getLogger(__name__)

    async def rebase(self, css: bytes) -> CssResult:
        css_text = css.decode("utf-8") if isinstance(css, bytes) else css
        regions: Optional[RegionIndex] = None
        lines = _LineIndex(css_text)

        pieces: List[str] = []
        last = 0
        for ref in find_references(css_text):
            if not self.paths.is_rebasable(ref.value):
                continue

            if regions is None:
                regions = build_regions(load_mappings(self.map))

            line, column = lines.position(ref.offset)
            region = regions.resolve(line, column)
            if region.source is None:
                raise NoOwningRegionError(line, column, f"position {line}:{column} maps to no source file")

            decision = await self.paths.decide(region.source, ref.value)
            if decision.suppressed:
                continue

            pieces.append(css_text[last:ref.start])
            pieces.append(self._quote(decision.written_value, ref.quote))
            last = ref.end

            event = RebaseEvent(decision.rebased_path, decision.resolved_path)
            self.logger.debug(f"Rebased CSS reference {ref.value!r} -> {event.rebased_path!r}")
            self.emit(REBASE_EVENT, *event)

        pieces.append(css_text[last:])
        return CssResult(css="".join(pieces).encode("utf-8"), map=self.map)

    @staticmethod
    def _quote(value: str, quote: str) -> str:
        if quote:
            return value.replace(quote, "\\" + quote)
        if _NEEDS_QUOTES_RE.search(value):
            # Bare url() value that now needs quoting; the closing paren of
            # the original token stays in place.
            return '"' + value.replace('"', '\\"') + '"'
        return value
