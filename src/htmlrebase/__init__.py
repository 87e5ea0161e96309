"""
htmlrebase: source-map driven asset rebasing for compiled HTML

Rewrites relative href/src attributes and inline <style> url() references
of markup generated by a template compiler, so that each reference resolves
against the template file it was written in rather than against the
generated document.
"""

__version__ = "1.0"
__author__ = "htmlrebase Project"
__description__ = "Source-map driven asset rebasing for compiled HTML"

from htmlrebase.core.errors import (  # noqa: E402
    HookError,
    MalformedSourceMapError,
    NoOwningRegionError,
    RebaseError,
    TokenizerError,
)
from htmlrebase.core.events import RebaseEvent  # noqa: E402
from htmlrebase.core.rebaser import RebaseOptions, RebaseResult, Rebaser, create_rebaser  # noqa: E402

__all__ = [
    "HookError",
    "MalformedSourceMapError",
    "NoOwningRegionError",
    "RebaseError",
    "RebaseEvent",
    "RebaseOptions",
    "RebaseResult",
    "Rebaser",
    "TokenizerError",
    "create_rebaser",
]
