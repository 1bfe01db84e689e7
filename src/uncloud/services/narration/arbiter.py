"""Single-owner arbitration over the shared audio output."""

import logging
from typing import Optional, Protocol

from .cancellation import CancellationSource

logger = logging.getLogger(__name__)


class LocalSynthesis(Protocol):
    """Anything that can silence every queued or active local utterance."""

    def cancel_all(self) -> None:
        ...


class PlaybackArbiter:
    """
    Ensures at most one narration is audible at a time.

    Created once per application and handed to every PlaybackEngine. The
    last caller of :meth:`acquire` always wins: the previous owner's
    cancellation source is cancelled immediately, which stops its audio
    through the callbacks its backends registered.
    """

    def __init__(self, local_synthesis: Optional[LocalSynthesis] = None):
        self._local_synthesis = local_synthesis
        self._owner: Optional[CancellationSource] = None

    @property
    def owner(self) -> Optional[CancellationSource]:
        return self._owner

    def holds(self, source: CancellationSource) -> bool:
        """True while ``source`` is the current owner and not cancelled."""
        return self._owner is source and not source.cancelled

    def acquire(self, source: CancellationSource) -> None:
        """Make ``source`` the owner, cancelling whoever held it before."""
        previous = self._owner
        if previous is not None and previous is not source:
            logger.info(f"Superseding narration {previous.name} with {source.name}")
            previous.cancel("superseded")
        self._cancel_local_synthesis()
        self._owner = source

    def release(self, source: CancellationSource) -> None:
        """Clear ownership if ``source`` still holds it."""
        if self._owner is not source:
            logger.debug(f"Ignoring release from non-owner {source.name}")
            return
        self._owner = None
        self._cancel_local_synthesis()

    def is_active(self) -> bool:
        return self._owner is not None

    def global_cleanup(self) -> None:
        """Stop whatever is playing; used on application shutdown."""
        owner, self._owner = self._owner, None
        if owner is not None:
            logger.info(f"Global cleanup stopping narration {owner.name}")
            owner.cancel("shutdown")
        self._cancel_local_synthesis()

    def _cancel_local_synthesis(self) -> None:
        if self._local_synthesis is not None:
            self._local_synthesis.cancel_all()


__all__ = ["PlaybackArbiter", "LocalSynthesis"]
