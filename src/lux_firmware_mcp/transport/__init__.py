"""Transport layer: TCP link to the inverter's update port."""

from .tcp_connection import DEFAULT_HOST, DEFAULT_PORT, TCPConnection
