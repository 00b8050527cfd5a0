"""
Subscription registry - listener fan-out for participant snapshots and connection status
"""

import logging
from enum import Enum
from typing import Callable, List

from models.participant import Participant

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    """State of the link to the remote participant table"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


ParticipantListener = Callable[[List[Participant]], None]
StatusListener = Callable[[ConnectionStatus], None]


class SubscriptionRegistry:
    """
    Two independent listener lists.

    Registering the same callback twice is allowed and makes it fire twice.
    Delivery is synchronous and in registration order; a listener that
    raises is logged and skipped so later listeners still receive the update.
    """

    def __init__(self):
        self._participant_listeners: List[ParticipantListener] = []
        self._status_listeners: List[StatusListener] = []
        self._status = ConnectionStatus.DISCONNECTED

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    def add_participant_listener(self, callback: ParticipantListener):
        self._participant_listeners.append(callback)
        logger.info(f"REALTIME: Added participant listener, total: {len(self._participant_listeners)}")

    def remove_participant_listener(self, callback: ParticipantListener):
        if callback in self._participant_listeners:
            self._participant_listeners.remove(callback)
            logger.info(f"REALTIME: Removed participant listener, total: {len(self._participant_listeners)}")

    def add_status_listener(self, callback: StatusListener):
        """Register a status listener; it is called with the current status right away"""
        self._status_listeners.append(callback)
        self._deliver(callback, self._status, "status")

    def remove_status_listener(self, callback: StatusListener):
        if callback in self._status_listeners:
            self._status_listeners.remove(callback)

    def notify_participants(self, participants: List[Participant]):
        # Iterate over a copy so listeners may deregister themselves
        for callback in list(self._participant_listeners):
            self._deliver(callback, participants, "participant")

    def set_status(self, status: ConnectionStatus):
        """Record a status transition and notify status listeners"""
        if status == self._status:
            return
        logger.info(f"REALTIME: Connection status {self._status.value} -> {status.value}")
        self._status = status
        for callback in list(self._status_listeners):
            self._deliver(callback, status, "status")

    def clear(self):
        self._participant_listeners.clear()
        self._status_listeners.clear()

    @property
    def listener_counts(self) -> dict:
        return {
            "participants": len(self._participant_listeners),
            "status": len(self._status_listeners),
        }

    @staticmethod
    def _deliver(callback, payload, kind: str):
        try:
            callback(payload)
        except Exception as e:
            logger.error(f"REALTIME: Error in {kind} listener callback: {e}", exc_info=True)
