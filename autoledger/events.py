"""
Process-wide ledger signals.

``ledger_changed`` fires with no payload after a reconciliation batch and
after a pairing import. UI collaborators connect to it and refetch.
"""

from typing import Callable

import structlog


logger = structlog.get_logger(__name__)

Receiver = Callable[[], None]


class LedgerSignal:
    """A named, payload-free signal with synchronous receivers."""

    def __init__(self, name: str):
        self.name = name
        self._receivers: list[Receiver] = []

    def connect(self, receiver: Receiver) -> Callable[[], None]:
        """Register ``receiver``; returns a callable that disconnects it."""
        self._receivers.append(receiver)
        return lambda: self.disconnect(receiver)

    def disconnect(self, receiver: Receiver) -> None:
        if receiver in self._receivers:
            self._receivers.remove(receiver)

    @property
    def receivers(self) -> int:
        return len(self._receivers)

    def emit(self) -> None:
        logger.debug("signal_emitted", signal=self.name, receivers=len(self._receivers))
        for receiver in list(self._receivers):
            try:
                receiver()
            except Exception as e:
                # One failing screen must not stop the others from refreshing
                logger.error("signal_receiver_failed", signal=self.name, error=str(e))


ledger_changed = LedgerSignal("ledger_changed")
