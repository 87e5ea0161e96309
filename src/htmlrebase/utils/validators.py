"""
Reference Validation Utilities

This module decides which asset references are eligible for rebasing and
provides the path arithmetic used to rebase them.
"""

import posixpath
from urllib.parse import urlsplit
from typing import Optional
import logging


class ReferenceValidator:
    """
    Classifies and resolves asset references found in markup and CSS.

    A reference is rebasable only when it is relative: no scheme, no host,
    not an absolute path, and a non-empty path component (so a pure
    same-document fragment like ``#top`` is never rebasable).
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def is_rebasable(self, reference: str) -> bool:
        """
        Check whether a reference should be rebased.

        Args:
            reference: Raw attribute value or CSS url() argument

        Returns:
            True if the reference is relative and rebasable
        """
        if reference is None:
            return False

        try:
            parsed = urlsplit(reference)
        except ValueError as e:
            self.logger.debug(f"Unparseable reference {reference!r}: {e}")
            return False

        if parsed.scheme:
            return False
        if parsed.netloc or reference.startswith('//'):
            return False
        if not parsed.path:
            # Empty, query-only, or pure fragment
            return False
        if posixpath.isabs(parsed.path):
            return False

        return True

    def path_component(self, reference: str) -> str:
        """
        Extract the path component of a reference, without query or fragment.

        Args:
            reference: A rebasable reference

        Returns:
            The path component
        """
        return urlsplit(reference).path

    def resolve(self, owner_source: str, reference: str) -> str:
        """
        Join a reference against the directory of the file that contains it.

        Args:
            owner_source: Source file the reference was written in
            reference: A rebasable reference

        Returns:
            Normalized POSIX path of the reference relative to the working
            directory of the source file names
        """
        path = self.path_component(reference)
        joined = posixpath.join(posixpath.dirname(owner_source), path)
        return _normalize(joined, keep_trailing_slash=path.endswith('/'))


def _normalize(path: str, keep_trailing_slash: bool = False) -> str:
    normalized = posixpath.normpath(path)
    if keep_trailing_slash and not normalized.endswith('/'):
        normalized += '/'
    return normalized


def to_root_relative(path: str) -> str:
    """
    Normalize a rebased path into the form written back into the document:
    relative to the document root, forward slashes only.

    ``/foo`` becomes ``foo``, ``a/./b/../c`` becomes ``a/c``.
    """
    normalized = _normalize('./' + path, keep_trailing_slash=path.endswith('/'))
    return normalized.replace('\\', '/')


# Global validator instance
_validator_instance: Optional[ReferenceValidator] = None


def get_validator() -> ReferenceValidator:
    """
    Get the global reference validator instance.

    Returns:
        ReferenceValidator instance
    """
    global _validator_instance
    if _validator_instance is None:
        _validator_instance = ReferenceValidator()
    return _validator_instance


def is_rebasable(reference: str) -> bool:
    """
    Convenience wrapper around the global validator.
    """
    return get_validator().is_rebasable(reference)
