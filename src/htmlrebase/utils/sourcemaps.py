"""
Source map decoding and encoding helpers.

Decoding is delegated to the ``sourcemap`` library; this module only
normalizes its input and turns its failures into MalformedSourceMapError.
Encoding covers what the rebaser needs to build: small v3 maps with a
handful of sources (the synthetic inline-style map, test fixtures).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

import sourcemap
from sourcemap.exceptions import SourceMapDecodeError

from htmlrebase.core.errors import MalformedSourceMapError


logger = logging.getLogger(__name__)

BASE64_DIGITS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
VLQ_SHIFT = 5
VLQ_CONTINUATION = 1 << VLQ_SHIFT
VLQ_MASK = VLQ_CONTINUATION - 1

# (generated line 1-based, generated column 0-based, source)
Mapping = Tuple[int, int, Optional[str]]


def load_mappings(raw: Union[bytes, str]) -> List[Mapping]:
    """
    Decode a serialized v3 source map into its mappings.

    Args:
        raw: The serialized map, as bytes or text

    Returns:
        List of (generated_line, generated_column, source) tuples in
        generated order, lines 1-based and columns 0-based

    Raises:
        MalformedSourceMapError: if the map is not a decodable v3 map
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedSourceMapError(f"source map is not valid UTF-8: {e}") from e

    try:
        data = json.loads(raw)
    except ValueError as e:
        raise MalformedSourceMapError(f"source map is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedSourceMapError("source map must be a JSON object")
    for field in ("mappings", "sources"):
        if field not in data:
            raise MalformedSourceMapError(f"source map has no '{field}' field")
    if not isinstance(data["mappings"], str) or not isinstance(data["sources"], list):
        raise MalformedSourceMapError("source map 'mappings' or 'sources' has the wrong type")

    # The decoder requires a names table; v3 makes it optional.
    data.setdefault("names", [])

    try:
        index = sourcemap.loads(json.dumps(data))
    except (SourceMapDecodeError, ValueError, KeyError, IndexError, TypeError) as e:
        raise MalformedSourceMapError(f"source map mappings cannot be decoded: {e}") from e

    mappings = [(token.dst_line + 1, token.dst_col, token.src) for token in index]
    logger.debug(f"Decoded {len(mappings)} mappings over {len(data['sources'])} sources")
    return mappings


def encode_vlq(value: int) -> str:
    """Encode one signed integer as a base64 VLQ group."""
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    encoded = ""
    while True:
        digit = vlq & VLQ_MASK
        vlq >>= VLQ_SHIFT
        if vlq:
            digit |= VLQ_CONTINUATION
        encoded += BASE64_DIGITS[digit]
        if not vlq:
            return encoded


@dataclass(frozen=True)
class _BuilderMapping:
    generated_line: int
    generated_column: int
    source: str
    original_line: int
    original_column: int


class SourceMapBuilder:
    """
    Builds a v3 source map from individual mappings.

    Lines are 1-based and columns 0-based, the same convention
    load_mappings() returns.
    """

    def __init__(self, file: Optional[str] = None):
        self.file = file
        self._mappings: List[_BuilderMapping] = []
        self._sources: List[str] = []
        self._contents: Dict[str, str] = {}

    def add_mapping(self,
                    generated_line: int,
                    generated_column: int,
                    source: str,
                    original_line: int = 1,
                    original_column: int = 0) -> None:
        if generated_line < 1 or original_line < 1:
            raise ValueError("source map lines are 1-based")
        if generated_column < 0 or original_column < 0:
            raise ValueError("source map columns cannot be negative")
        if source not in self._sources:
            self._sources.append(source)
        self._mappings.append(_BuilderMapping(
            generated_line, generated_column, source, original_line, original_column
        ))

    def set_source_content(self, source: str, content: str) -> None:
        if source not in self._sources:
            self._sources.append(source)
        self._contents[source] = content

    def _encode_mappings(self) -> str:
        ordered = sorted(self._mappings, key=lambda m: (m.generated_line, m.generated_column))
        lines: List[str] = []
        previous_source = previous_line = previous_column = 0
        current_line = 1
        segments: List[str] = []
        previous_generated_column = 0

        for mapping in ordered:
            while current_line < mapping.generated_line:
                lines.append(",".join(segments))
                segments = []
                previous_generated_column = 0
                current_line += 1

            source_id = self._sources.index(mapping.source)
            segments.append(
                encode_vlq(mapping.generated_column - previous_generated_column)
                + encode_vlq(source_id - previous_source)
                + encode_vlq(mapping.original_line - 1 - previous_line)
                + encode_vlq(mapping.original_column - previous_column)
            )
            previous_generated_column = mapping.generated_column
            previous_source = source_id
            previous_line = mapping.original_line - 1
            previous_column = mapping.original_column

        lines.append(",".join(segments))
        return ";".join(lines)

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "version": 3,
            "sources": list(self._sources),
            "names": [],
            "mappings": self._encode_mappings(),
        }
        if self.file:
            data["file"] = self.file
        if self._contents:
            data["sourcesContent"] = [self._contents.get(s) for s in self._sources]
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def to_bytes(self) -> bytes:
        return self.to_json().encode("utf-8")


def build_single_source_map(source: str, content: str, line_count: int) -> bytes:
    """
    Build a map where every generated line maps to line 1, column 0 of a
    single source whose content is ``content``.
    """
    builder = SourceMapBuilder()
    for generated_line in range(1, line_count + 1):
        builder.add_mapping(generated_line, 0, source, 1, 0)
    builder.set_source_content(source, content)
    return builder.to_bytes()
