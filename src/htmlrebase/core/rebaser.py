"""
Markup rebaser: rewrites relative href/src attributes and inline <style>
url() references against the template file each one came from.

Each call to Rebaser.rebase() runs in its own invocation context: its own
tokenizer, its own work queue, and a region index built lazily from the
configured source map the first time a reference needs resolving.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .css import CssRebaser
from .errors import NoOwningRegionError, RebaseError, TokenizerError
from .events import REBASE_EVENT, EventSource, RebaseEvent
from .markup import (
    END_TAG,
    START_TAG,
    TEXT,
    MarkupTokenizer,
    StartTagToken,
    TextToken,
    Token,
    render_token,
)
from .paths import PathResolver, RebaseHandler
from .regions import Region, RegionIndex, build_regions
from htmlrebase.utils.sourcemaps import build_single_source_map, load_mappings


REBASED_ATTRIBUTES = ("href", "src")
STYLE_ELEMENT = "style"
DEFAULT_CHUNK_SIZE = 64 * 1024

_END_OF_INPUT = object()


@dataclass
class RebaseOptions:
    rebase: Optional[RebaseHandler] = None   # hook deciding each eligible reference
    chunk_size: int = DEFAULT_CHUNK_SIZE     # characters fed to the tokenizer at a time

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")


@dataclass
class RebaseResult:
    data: bytes
    map: bytes
    events: List[RebaseEvent] = field(default_factory=list)


class InlineStyleDelegate:
    """
    Rebases the stylesheet held by a text token inside <style>.

    The stylesheet is handed to a CssRebaser together with a synthetic map
    attributing every one of its lines to the source file that owns the
    token, so url() references resolve against that file.
    """

    def __init__(self, invocation: "_Invocation"):
        self.invocation = invocation
        self.logger = logging.getLogger(__name__)

    async def rebase(self, token: TextToken, raw_css: str) -> str:
        region = self.invocation.owner(token.line, token.column)
        line_count = 1 + token.end_line - token.line
        synthetic_map = build_single_source_map(region.source, raw_css, line_count)

        css_rebaser = CssRebaser(synthetic_map, rebase=self.invocation.paths.hook)
        css_rebaser.on(REBASE_EVENT, self.invocation.record)

        result = await css_rebaser.rebase(raw_css.encode("utf-8"))
        self.logger.debug(f"Rebased inline stylesheet at {token.line}:{token.column} from {region.source}")
        return result.css.decode("utf-8")


class _Invocation:
    """State of one rebase() call."""

    def __init__(self, rebaser: "Rebaser", html: str):
        self.rebaser = rebaser
        self.html = html
        self.paths = PathResolver(rebaser.options.rebase)
        self.styles = InlineStyleDelegate(self)
        self.events: List[RebaseEvent] = []
        self.output: List[str] = []
        self.current_element: Optional[str] = None
        self.queue: asyncio.Queue = asyncio.Queue()
        self._regions: Optional[RegionIndex] = None
        self.logger = logging.getLogger(__name__)

    @property
    def regions(self) -> RegionIndex:
        if self._regions is None:
            self._regions = build_regions(load_mappings(self.rebaser.map))
        return self._regions

    def owner(self, line: int, column: int) -> Region:
        region = self.regions.resolve(line, column)
        if region.source is None:
            raise NoOwningRegionError(line, column, f"position {line}:{column} maps to no source file")
        return region

    def record(self, rebased_path: str, resolved_path: str) -> None:
        event = RebaseEvent(rebased_path, resolved_path)
        self.events.append(event)
        self.rebaser.emit(REBASE_EVENT, *event)

    async def run(self) -> str:
        tokenizer = MarkupTokenizer(self.html, self.queue.put_nowait)
        worker = asyncio.ensure_future(self._work())
        chunk_size = self.rebaser.options.chunk_size

        try:
            for i in range(0, len(self.html), chunk_size):
                if worker.done():
                    break
                tokenizer.feed(self.html[i:i + chunk_size])
                await asyncio.sleep(0)
            if not worker.done():
                tokenizer.close()
        except (AssertionError, ValueError, IndexError) as e:
            if worker.done() and not worker.cancelled() and worker.exception() is not None:
                raise worker.exception()
            worker.cancel()
            await asyncio.gather(worker, return_exceptions=True)
            raise TokenizerError(str(e)) from e

        self.queue.put_nowait(_END_OF_INPUT)
        await worker
        return "".join(self.output)

    async def _work(self) -> None:
        while True:
            token = await self.queue.get()
            if token is _END_OF_INPUT:
                return
            await self._handle(token)
            self.output.append(render_token(token, self.html))

    async def _handle(self, token: Token) -> None:
        if token.kind == START_TAG:
            self.current_element = token.name
            await self._rebase_attributes(token)
        elif token.kind == TEXT:
            if self.current_element == STYLE_ELEMENT:
                raw_css = self.html[token.start:token.end]
                token.text = await self.styles.rebase(token, raw_css)
        elif token.kind == END_TAG:
            self.current_element = None

    async def _rebase_attributes(self, tag: StartTagToken) -> None:
        for attribute in tag.attrs:
            name, value = attribute
            if name not in REBASED_ATTRIBUTES or value is None:
                continue
            if not self.paths.is_rebasable(value):
                continue

            region = self.owner(tag.line, tag.column)
            decision = await self.paths.decide(region.source, value)
            if decision.suppressed:
                continue

            attribute[1] = decision.written_value
            tag.modified = True
            self.record(decision.rebased_path, decision.resolved_path)


class Rebaser(EventSource):
    """
    Rebases the asset references of markup produced by a template compiler.

    Usage::

        rebaser = create_rebaser(map_bytes)
        rebaser.on("rebase", lambda rebased, resolved: ...)
        result = await rebaser.rebase(html_bytes)
    """

    def __init__(self, map: bytes, options: Optional[RebaseOptions] = None):
        super().__init__()
        self.map = map
        self.options = options or RebaseOptions()
        self.logger = logging.getLogger(__name__)

    async def rebase(self, html: bytes) -> RebaseResult:
        """
        Rebase the asset references of a markup buffer.

        Args:
            html: The markup whose references need to be rebased

        Returns:
            RebaseResult with the rewritten markup, the source map passed
            through unchanged, and the rebase events in document order

        Raises:
            RebaseError: the first failure met while processing the document
        """
        try:
            text = html.decode("utf-8") if isinstance(html, bytes) else html
        except UnicodeDecodeError as e:
            raise TokenizerError(f"markup is not valid UTF-8: {e}") from e

        invocation = _Invocation(self, text)
        try:
            data = await invocation.run()
        except RebaseError as e:
            self.logger.error(f"Rebase failed: {e}")
            raise

        self.logger.info(f"Rebased {len(invocation.events)} asset references")
        return RebaseResult(data=data.encode("utf-8"), map=self.map, events=invocation.events)

    def rebase_sync(self, html: bytes) -> RebaseResult:
        """Run rebase() to completion in a new event loop."""
        return asyncio.run(self.rebase(html))


def create_rebaser(map: bytes,
                   options: Optional[RebaseOptions] = None,
                   rebase: Optional[RebaseHandler] = None) -> Rebaser:
    """
    Create a Rebaser for markup paired with ``map``.

    Args:
        map: Serialized source map of the markup
        options: Rebase options
        rebase: Shortcut for ``RebaseOptions(rebase=...)``

    Returns:
        Rebaser instance
    """
    if options is None:
        options = RebaseOptions(rebase=rebase)
    elif rebase is not None:
        options = RebaseOptions(rebase=rebase, chunk_size=options.chunk_size)
    return Rebaser(map, options)
