"""TUIO 1.1 ``/tuio/2Dcur`` message formatting for frames."""

from __future__ import annotations

from typing import List, Set, Tuple

from contracts import ContactType, Frame
from log_config.logger import get_logger

logger = get_logger(__name__)

CURSOR_PROFILE = "/tuio/2Dcur"

TuioMessage = Tuple[object, ...]


class TuioFormatter:
    """Turns frames into the message list of one TUIO bundle.

    Each bundle is ``fseq``, one ``set`` per contact reported in the frame,
    then ``alive`` with every cursor that has started and not yet ended.
    Cursors that are live but absent from a frame (for example while a track
    rides out a sensor dropout) stay in ``alive`` without a ``set``. Velocity
    and acceleration fields are always zero.
    """

    def __init__(self) -> None:
        self._alive: Set[int] = set()

    @property
    def alive_ids(self) -> List[int]:
        return sorted(self._alive)

    def reset(self) -> None:
        self._alive.clear()

    def build_bundle(self, frame: Frame) -> List[TuioMessage]:
        messages: List[TuioMessage] = [(CURSOR_PROFILE, "fseq", int(frame.sequence))]
        for contact in frame.contacts:
            if contact.type is ContactType.END:
                self._alive.discard(contact.id)
                continue
            self._alive.add(contact.id)
            messages.append(
                (
                    CURSOR_PROFILE,
                    "set",
                    int(contact.id),
                    float(contact.normalized_position.x),
                    float(contact.normalized_position.y),
                    0.0,
                    0.0,
                    0.0,
                    float(contact.size[0]),
                    float(contact.size[1]),
                )
            )
        messages.append((CURSOR_PROFILE, "alive", *sorted(self._alive)))
        return messages
