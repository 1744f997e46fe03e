"""TCP connection to an inverter or battery controller.

The datalogger exposes a raw point-to-point TCP port (8899 by default) on
its local access point. One request is outstanding at a time: write a
frame, then read a single response of up to 1024 bytes.
"""

from __future__ import annotations

import logging
import socket

from ..protocol.framing import to_hex_text

logger = logging.getLogger(__name__)

DEFAULT_HOST = "10.10.10.1"
DEFAULT_PORT = 8899
DEFAULT_TIMEOUT = 5.0
READ_BUFFER_SIZE = 1024


class TCPConnection:
    """Manages the TCP connection to one device.

    Usage::

        with TCPConnection("10.10.10.1") as conn:
            if conn.open():
                response = conn.send_and_receive(frame, "tcpUpdate_Prepare")
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._sock: socket.socket | None = None

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def __enter__(self) -> TCPConnection:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def open(self) -> bool:
        """Connect to the device.

        Read and write timeouts are set to the connection timeout.

        Returns:
            True on success, False if the host refused, timed out, or
            could not be resolved.
        """
        if self._sock is not None:
            return True
        try:
            sock = socket.create_connection(
                (self._host, self._port), timeout=self._timeout
            )
        except OSError as e:
            logger.error("Failed to connect to %s:%d: %s", self._host, self._port, e)
            return False

        sock.settimeout(self._timeout)
        self._sock = sock
        logger.info("Connected to %s:%d", self._host, self._port)
        return True

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._sock is None:
            return

        try:
            self._sock.close()
        except OSError as e:
            logger.warning("Error closing socket: %s", e)
        finally:
            self._sock = None
            logger.info("Disconnected from %s:%d", self._host, self._port)

    def write(self, data: bytes) -> None:
        """Write a complete frame.

        Raises:
            ConnectionError: If not connected.
            OSError: If the write fails or times out.
        """
        if self._sock is None:
            raise ConnectionError("Not connected to device")
        self._sock.sendall(data)

    def read(self) -> bytes | None:
        """Perform one bounded read.

        Returns:
            The received bytes (``b""`` if the peer sent nothing), or
            ``None`` on timeout or socket error.

        Raises:
            ConnectionError: If not connected.
        """
        if self._sock is None:
            raise ConnectionError("Not connected to device")
        try:
            return self._sock.recv(READ_BUFFER_SIZE)
        except OSError as e:
            logger.debug("Read error: %s", e)
            return None

    def send_and_receive(self, frame: bytes, command_name: str = "") -> str | None:
        """Send a frame and read the response as hex text.

        Args:
            frame: Complete frame bytes.
            command_name: Label used in diagnostics.

        Returns:
            The response as uppercase hex text, ``""`` for an empty
            response, or ``None`` if the exchange failed.

        Raises:
            ConnectionError: If not connected.
        """
        if self._sock is None:
            raise ConnectionError("Not connected to device")

        logger.debug("%s >> %s", command_name, to_hex_text(frame))
        try:
            self.write(frame)
        except OSError as e:
            logger.warning("Error sending command %s: %s", command_name, e)
            return None

        response = self.read()
        if response is None:
            logger.warning("No response to %s", command_name)
            return None

        text = to_hex_text(response)
        logger.debug("%s << %s", command_name, text or "(empty)")
        return text
