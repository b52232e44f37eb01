"""
Progress events for deployments and confirmation monitoring.

Emission is transport-agnostic: listeners are plain callables invoked
synchronously, in order. Relaying to HTTP or WebSocket clients is the
caller's concern.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .models import DeploymentStage


logger = logging.getLogger(__name__)


@dataclass
class ProgressEvent:
    """A single stage transition."""
    stage: DeploymentStage
    message: str
    tx_hash: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        event = {"stage": self.stage.value, "message": self.message}
        if self.tx_hash:
            event["txHash"] = self.tx_hash
        if self.data:
            event["data"] = self.data
        return event


ProgressListener = Callable[[ProgressEvent], None]


class ProgressEmitter:
    """
    Observer registry for progress events.

    Usage:
        emitter = ProgressEmitter()
        unsubscribe = emitter.subscribe(print)
        emitter.emit(ProgressEvent(DeploymentStage.VALIDATING, "Validating..."))
        unsubscribe()
    """

    def __init__(self, listeners: Optional[List[ProgressListener]] = None):
        self._listeners: List[ProgressListener] = list(listeners or [])
        self.history: List[ProgressEvent] = []

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: ProgressEvent) -> None:
        self.history.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # A broken listener must not abort the deployment it observes
                logger.error(f"Progress listener failed on {event.stage.value}: {e}")

    @property
    def stages(self) -> List[DeploymentStage]:
        return [event.stage for event in self.history]
