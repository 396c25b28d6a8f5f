# Copyright 2025 Jared Hendrickson
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Status events emitted while renewals run. The core never prints; a console, a log, or a test can subscribe to the
emitter and present progress however it likes.
"""
import dataclasses
import enum
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    """The lifecycle stage an event reports."""
    START = "start"
    STEP = "step"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclasses.dataclass(frozen=True)
class StatusEvent:
    """A single progress report for one subdomain."""
    kind: EventKind
    subdomain: str
    message: str
    error: Optional[BaseException] = None


class EventEmitter:
    """Fans status events out to every subscribed callback."""

    def __init__(self) -> None:
        self._listeners = []

    def subscribe(self, listener: Callable[[StatusEvent], None]) -> Callable[[], None]:
        """
        Registers a callback for every future event.

        Args:
            listener (callable): Called with each `StatusEvent`.

        Returns:
            callable: A function that removes the listener again.
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def emit(self, kind: EventKind, subdomain: str, message: str, error: BaseException = None) -> StatusEvent:
        """
        Delivers an event to every listener. A listener that raises is logged and skipped so a broken presentation
        layer can never fail a renewal.

        Returns:
            remote_ssl_renewal.events.StatusEvent: The event that was delivered.
        """
        event = StatusEvent(kind=kind, subdomain=subdomain, message=message, error=error)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Status listener %r failed on %s event for %s", listener, kind.value, subdomain)
        return event

    def start(self, subdomain: str, message: str) -> StatusEvent:
        """Shorthand for emitting a START event."""
        return self.emit(EventKind.START, subdomain, message)

    def step(self, subdomain: str, message: str) -> StatusEvent:
        """Shorthand for emitting a STEP event."""
        return self.emit(EventKind.STEP, subdomain, message)

    def success(self, subdomain: str, message: str) -> StatusEvent:
        """Shorthand for emitting a SUCCESS event."""
        return self.emit(EventKind.SUCCESS, subdomain, message)

    def failure(self, subdomain: str, message: str, error: BaseException = None) -> StatusEvent:
        """Shorthand for emitting a FAILURE event."""
        return self.emit(EventKind.FAILURE, subdomain, message, error=error)


def logging_listener(event: StatusEvent) -> None:
    """Writes events to this module's logger; failures at ERROR, everything else at INFO."""
    if event.kind is EventKind.FAILURE:
        logger.error("[%s] %s: %s", event.subdomain, event.message, event.error)
    else:
        logger.info("[%s] %s", event.subdomain, event.message)
