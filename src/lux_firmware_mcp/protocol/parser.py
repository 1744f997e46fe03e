"""Decoding of device responses to update commands.

Responses arrive as hex text (see :func:`.framing.to_hex_text`). All
decoders check the length before reading an offset and return ``None``
when the response is too short, leaving the caller to decide whether the
shortfall is fatal.
"""

from __future__ import annotations

from dataclasses import dataclass

from .framing import hex_byte_at, hex_u16_at

RESUME_INDEX_OFFSET = 16
STANDARD_UPDATE_FLAG_OFFSET = 16
RESET_STATUS_OFFSET = 16

STANDARD_UPDATE_FLAG = ord("A")
RESET_ACCEPTED = 1

# Bytes needed to decode a Prepare response (resume index at [16..17])
PREPARE_RESPONSE_MIN_SIZE = RESUME_INDEX_OFFSET + 2
RESET_RESPONSE_MIN_SIZE = RESET_STATUS_OFFSET + 1


@dataclass
class PrepareResponse:
    """Parsed UPDATE_PREPARE response."""

    resume_index: int
    standard_update: bool
    raw: str

    def __repr__(self) -> str:
        return (
            f"PrepareResponse(resume_index={self.resume_index}, "
            f"standard_update={self.standard_update})"
        )


@dataclass
class ResetResponse:
    """Parsed UPDATE_RESET response."""

    status: int
    raw: str

    @property
    def accepted(self) -> bool:
        return self.status == RESET_ACCEPTED


def parse_resume_index(text: str, package_count: int) -> int | None:
    """Decode the package index the device wants to resume from.

    Values outside ``[1, package_count - 1]`` fall back to 1.

    Returns:
        The resume index, or ``None`` if the response is too short.
    """
    value = hex_u16_at(text, RESUME_INDEX_OFFSET)
    if value is None:
        return None
    if value <= 0 or value >= package_count:
        return 1
    return value


def parse_standard_update_flag(text: str) -> bool | None:
    """True if the flag byte of a Prepare response is ASCII ``'A'``."""
    flag = hex_byte_at(text, STANDARD_UPDATE_FLAG_OFFSET)
    if flag is None:
        return None
    return flag == STANDARD_UPDATE_FLAG


def parse_reset_status(text: str) -> int | None:
    """Decode the status byte of a Reset response."""
    return hex_byte_at(text, RESET_STATUS_OFFSET)


def parse_prepare_response(text: str, package_count: int) -> PrepareResponse | None:
    """Parse a Prepare response, or ``None`` if it cannot be decoded."""
    if not text or len(text) < PREPARE_RESPONSE_MIN_SIZE * 2:
        return None
    resume_index = parse_resume_index(text, package_count)
    standard_update = parse_standard_update_flag(text)
    if resume_index is None or standard_update is None:
        return None
    return PrepareResponse(
        resume_index=resume_index,
        standard_update=standard_update,
        raw=text,
    )


def parse_reset_response(text: str) -> ResetResponse | None:
    """Parse a Reset response, or ``None`` if it cannot be decoded."""
    if not text:
        return None
    status = parse_reset_status(text)
    if status is None:
        return None
    return ResetResponse(status=status, raw=text)
