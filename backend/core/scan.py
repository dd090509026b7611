"""
Scan resolution flow.

One ``ScanSession`` per scanner. A payload is decoded, then resolved against
the store, and the session parks in a terminal state until ``reset()``:

    IDLE -> DECODING -> RESOLVING -> FOUND | NOT_FOUND | LOOKUP_ERROR
    IDLE -> DECODING -> NOT_RECOGNIZED

Payloads submitted while the session is not IDLE are ignored, so a single
scan gesture triggers at most one lookup. Nothing is retried automatically.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from core import qr_codec
from core.errors import LookupFailed, NotRecognized
from db.box import Box

logger = logging.getLogger(__name__)


class ScanState(str, Enum):
    IDLE = "idle"
    DECODING = "decoding"
    RESOLVING = "resolving"
    FOUND = "found"
    NOT_RECOGNIZED = "not_recognized"
    NOT_FOUND = "not_found"
    LOOKUP_ERROR = "lookup_error"


TERMINAL_STATES = {
    ScanState.FOUND,
    ScanState.NOT_RECOGNIZED,
    ScanState.NOT_FOUND,
    ScanState.LOOKUP_ERROR,
}


@dataclass
class ScanOutcome:
    state: ScanState
    payload: str
    box: Optional[Box] = None
    box_id: Optional[str] = None
    message: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return self.state == ScanState.LOOKUP_ERROR


Lookup = Callable[[str], Awaitable[Optional[Box]]]


class ScanSession:
    def __init__(self, lookup: Lookup):
        self._lookup = lookup
        self.state = ScanState.IDLE
        self.outcome: Optional[ScanOutcome] = None

    @property
    def accepting(self) -> bool:
        return self.state == ScanState.IDLE

    async def submit(self, payload: str) -> Optional[ScanOutcome]:
        """Resolve one payload. Returns None when the frame is ignored."""
        if not self.accepting:
            logger.debug("Ignoring scan while %s", self.state.value)
            return None

        self.state = ScanState.DECODING
        try:
            box_id = qr_codec.decode(payload)
        except NotRecognized as e:
            return self._finish(ScanOutcome(ScanState.NOT_RECOGNIZED, payload, message=str(e)))

        self.state = ScanState.RESOLVING
        try:
            box = await self._lookup(payload)
        except LookupFailed as e:
            logger.warning("Lookup failed for %r: %s", payload, e)
            return self._finish(ScanOutcome(ScanState.LOOKUP_ERROR, payload, box_id=box_id, message=str(e)))
        except Exception:
            self.state = ScanState.IDLE
            raise

        if box is None:
            return self._finish(ScanOutcome(
                ScanState.NOT_FOUND,
                payload,
                box_id=box_id,
                message="This BinQR code is not in your collection",
            ))
        return self._finish(ScanOutcome(ScanState.FOUND, payload, box=box, box_id=box_id))

    def _finish(self, outcome: ScanOutcome) -> ScanOutcome:
        self.state = outcome.state
        self.outcome = outcome
        return outcome

    def reset(self) -> None:
        """User asked to scan again."""
        self.state = ScanState.IDLE
        self.outcome = None


async def resolve_scan(store, payload: str) -> ScanOutcome:
    session = ScanSession(store.find_box_by_qr_code)
    return await session.submit(payload)
