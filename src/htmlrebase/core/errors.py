"""
Error types raised while rebasing markup.

Every failure aborts the whole invocation; nothing here is recovered
locally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(eq=False)
class RebaseError(Exception):
    stage: str
    message: str

    def __str__(self) -> str:
        return f"{self.stage}: {self.message}"


class MalformedSourceMapError(RebaseError):
    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(stage="source-map", message=message or "source map cannot be decoded")


class NoOwningRegionError(RebaseError):
    def __init__(self, line: int, column: int, message: Optional[str] = None) -> None:
        super().__init__(
            stage="regions",
            message=message or f"no region owns generated position {line}:{column}",
        )
        self.line = line
        self.column = column


class HookError(RebaseError):
    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(stage="hook", message=message or "rebase hook failed")


class TokenizerError(RebaseError):
    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(stage="tokenizer", message=message or "markup cannot be tokenized")
