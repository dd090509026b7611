"""
BinQR payload codec.

Printed symbols carry ``BinQR:<box-id>`` or, after a reissue,
``BinQR:<box-id>:<nonce>``. This string is the only identity that leaves the
system, so the format must stay parseable for the lifetime of a box.
"""

import time
from typing import NamedTuple, Optional

import qrcode
import qrcode.image.svg

from core.errors import NotRecognized

PREFIX = "BinQR:"
DELIMITER = ":"


class QRPayload(NamedTuple):
    box_id: str
    nonce: Optional[str] = None


def encode(box_id, nonce: Optional[str] = None) -> str:
    payload = f"{PREFIX}{box_id}"
    if nonce is not None:
        payload = f"{payload}{DELIMITER}{nonce}"
    return payload


def parse(payload: str) -> QRPayload:
    if not isinstance(payload, str) or not payload.startswith(PREFIX):
        raise NotRecognized(f"Not a BinQR code: {payload!r}")
    body = payload[len(PREFIX):]
    box_id, sep, nonce = body.partition(DELIMITER)
    if not box_id:
        raise NotRecognized(f"BinQR code has no box id: {payload!r}")
    return QRPayload(box_id=box_id, nonce=nonce if sep else None)


def decode(payload: str) -> str:
    """Return the box id embedded in ``payload``; raise NotRecognized otherwise."""
    return parse(payload).box_id


def is_recognized(payload: str) -> bool:
    try:
        parse(payload)
    except NotRecognized:
        return False
    return True


def new_nonce(previous: Optional[str] = None) -> str:
    """Millisecond timestamp, never equal to the nonce carried by ``previous``."""
    nonce = int(time.time() * 1000)
    if previous and is_recognized(previous):
        old = parse(previous).nonce
        if old is not None and old.isdigit() and int(old) >= nonce:
            nonce = int(old) + 1
    return str(nonce)


def render_svg(payload: str) -> bytes:
    # symbol encoding is left to the qrcode library
    img = qrcode.make(payload, image_factory=qrcode.image.svg.SvgPathImage)
    data = img.to_string()
    return data if isinstance(data, bytes) else data.encode("utf-8")
