"""
Shared test helpers: a tiny "template compiler" that concatenates chunks of
several source files into one document and records a v3 source map for it,
the way a real template engine's output is paired with its map.
"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import pytest

# Add the src directory to the path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from htmlrebase.utils.sourcemaps import SourceMapBuilder  # noqa: E402


@dataclass
class CompiledDocument:
    html: bytes
    map: bytes

    @property
    def text(self) -> str:
        return self.html.decode("utf-8")


def compile_document(*chunks: Tuple[str, str]) -> CompiledDocument:
    """
    Concatenate (source, text) chunks into a document.

    A mapping is recorded where each chunk starts and at the start of every
    further non-empty line inside it.
    """
    builder = SourceMapBuilder(file="index.html")
    line, column = 1, 0
    out = []

    for source, text in chunks:
        original_line = 1
        builder.add_mapping(line, column, source, original_line, 0)
        for i, piece in enumerate(text.split("\n")):
            if i > 0:
                line += 1
                column = 0
                original_line += 1
                if piece:
                    builder.add_mapping(line, 0, source, original_line, 0)
            column += len(piece)
        out.append(text)

    return CompiledDocument("".join(out).encode("utf-8"), builder.to_bytes())


@pytest.fixture
def compiler():
    return compile_document


@pytest.fixture
def two_file_document() -> CompiledDocument:
    """index.twig including partials/partial.twig, one directory deeper."""
    return compile_document(
        ("fixtures/index.twig", "<html>\n<head>\n"),
        ("fixtures/partials/partial.twig", '  <img src="x.png">\n'),
        ("fixtures/index.twig", '  <img src="assets/a.png">\n</head>\n</html>\n'),
    )
