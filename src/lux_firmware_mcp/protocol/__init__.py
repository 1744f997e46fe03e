"""Protocol layer: frame envelope, CRC, update command builders, and response parsing."""

from .framing import build_frame, to_hex_text
from .commands import Opcode, build_prepare, build_reset, build_send_data
from .parser import parse_prepare_response, parse_reset_response
