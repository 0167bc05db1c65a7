import logging
from typing import Callable, List

from social.graze.atpi.resolve.resolver import ResolutionMode

logger = logging.getLogger(__name__)

ModeListener = Callable[[ResolutionMode], None]


class ModePreference:
    """
    The resolution mode used when a caller does not ask for one explicitly.

    This is the only live-reconfigurable value in the service. It starts from the configured default and can be
    changed at runtime through ``set``; listeners are notified after every change.
    """

    def __init__(self, mode: ResolutionMode = ResolutionMode.local) -> None:
        self._mode = mode
        self._listeners: List[ModeListener] = []

    def get(self) -> ResolutionMode:
        return self._mode

    def set(self, mode: ResolutionMode) -> None:
        if mode == self._mode:
            return
        logger.info("Resolution mode changed from %s to %s", self._mode.value, mode.value)
        self._mode = mode
        for listener in self._listeners:
            listener(mode)

    def subscribe(self, listener: ModeListener) -> None:
        self._listeners.append(listener)

    def resolve_mode(self, requested: str | None) -> ResolutionMode:
        """Return the requested mode if it is recognised, otherwise the current preference."""
        return ResolutionMode.parse(requested, self._mode)
