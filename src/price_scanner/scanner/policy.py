"""Decode acceptance policies.

A policy decides whether a decoded text is reported to the caller. State
(last text, repeat count) lives on the scan session, so a policy object can
be shared between sessions.
"""

from __future__ import annotations

from typing import Protocol

from .session import ScanSession


class DecodePolicy(Protocol):
    def accept(self, session: ScanSession, text: str) -> bool: ...


class ImmediateAccept:
    """Report the first decode."""

    def accept(self, session: ScanSession, text: str) -> bool:
        session.last_text = text
        session.repeat_count = 1
        return True


class ConfirmByRepetition:
    """Report a text once it was decoded `required` times in a row.

    A different text resets the counter. A confirmed text is reported once;
    it can fire again only after another text was seen in between.
    """

    def __init__(self, required: int = 3) -> None:
        if required < 1:
            raise ValueError("required must be >= 1")
        self.required = required

    def accept(self, session: ScanSession, text: str) -> bool:
        if text != session.last_text:
            session.last_text = text
            session.repeat_count = 0
            session.confirmed = False
        session.repeat_count += 1
        if session.confirmed or session.repeat_count < self.required:
            return False
        session.confirmed = True
        return True
