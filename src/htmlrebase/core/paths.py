"""
Reference resolution and rebase decisions.

Given the source file that owns a reference, computes the default rebased
path and asks the rebase hook what to do with it.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from .errors import HookError, RebaseError
from htmlrebase.utils.validators import ReferenceValidator, get_validator, to_root_relative


HookOutcome = Union[None, bool, str]

# hook(source, resolved_path) -> False | None | str, or an awaitable of one
RebaseHandler = Callable[[str, str], Union[HookOutcome, Awaitable[HookOutcome]]]

SUPPRESSED = "suppressed"
DEFAULT = "default"
OVERRIDE = "override"


@dataclass(frozen=True)
class RebaseDecision:
    outcome: str
    source: str
    resolved_path: str
    rebased_path: Optional[str] = None

    @property
    def suppressed(self) -> bool:
        return self.outcome == SUPPRESSED

    @property
    def written_value(self) -> Optional[str]:
        """Value written back into the document, or None when suppressed."""
        if self.rebased_path is None:
            return None
        return to_root_relative(self.rebased_path)


class PathResolver:
    """
    Computes default rebased paths and applies the rebase hook.

    With no hook configured every eligible reference is rebased to its
    default resolved path.
    """

    def __init__(self, hook: Optional[RebaseHandler] = None, validator: Optional[ReferenceValidator] = None):
        self.hook = hook
        self.validator = validator or get_validator()
        self.logger = logging.getLogger(__name__)

    def is_rebasable(self, raw_reference: str) -> bool:
        return self.validator.is_rebasable(raw_reference)

    def resolve_reference(self, owner_source: str, raw_reference: str) -> str:
        """Join the reference's path against the owner's directory."""
        return self.validator.resolve(owner_source, raw_reference)

    async def decide(self, owner_source: str, raw_reference: str) -> RebaseDecision:
        """
        Resolve a rebasable reference and run the hook on it.

        Args:
            owner_source: Source file that textually contains the reference
            raw_reference: The reference as written

        Returns:
            The RebaseDecision for this reference

        Raises:
            HookError: if the hook raises or returns an unsupported value
        """
        resolved_path = self.resolve_reference(owner_source, raw_reference)

        if self.hook is None:
            outcome: HookOutcome = None
        else:
            outcome = await self._call_hook(owner_source, resolved_path)

        if outcome is False:
            self.logger.debug(f"Rebase of {raw_reference!r} suppressed by hook")
            return RebaseDecision(SUPPRESSED, owner_source, resolved_path)
        if outcome is None or outcome == "":
            return RebaseDecision(DEFAULT, owner_source, resolved_path, resolved_path)
        if isinstance(outcome, str):
            return RebaseDecision(OVERRIDE, owner_source, resolved_path, outcome)

        raise HookError(
            f"rebase hook returned {outcome!r} for {resolved_path!r}; expected False, None or a string"
        )

    async def _call_hook(self, owner_source: str, resolved_path: str) -> HookOutcome:
        try:
            outcome = self.hook(owner_source, resolved_path)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except RebaseError:
            raise
        except Exception as e:
            raise HookError(f"rebase hook failed for {resolved_path!r}: {e}") from e
        return outcome
