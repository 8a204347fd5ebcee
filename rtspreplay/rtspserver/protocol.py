# Copyright (c) 2025 rtspreplay contributors
# This file is part of rtspreplay.
#
# rtspreplay is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

"""RTSP Protocol constants and utilities."""

import time
from enum import IntEnum
from typing import Dict, Optional, Union

from tornado.httputil import format_timestamp

# RTSP Version
RTSP_VERSION = "RTSP/1.0"

# Default ports
DEFAULT_RTSP_PORT = 8554
DEFAULT_RTP_BASE_PORT = 20000

LINE_SEPARATOR = "\r\n"
HEADER_TERMINATOR = b"\r\n\r\n"

# Largest request (headers plus body) a connection may buffer
MAX_MESSAGE_SIZE = 65536


class RTSPError(Exception):
    """Base class for RTSP errors."""


class RTSPParseError(RTSPError):
    """Raised when a request line does not have the METHOD URI VERSION shape."""


class MessageTooLargeError(RTSPError):
    """Raised when a buffered request grows past MAX_MESSAGE_SIZE."""


class TransportError(RTSPError):
    """Raised when a Transport header cannot be negotiated."""


class RTSPMethod(IntEnum):
    """RTSP request methods served by this server.

    Any other method token maps to UNSUPPORTED.
    """
    UNSUPPORTED = 0
    OPTIONS = 1
    DESCRIBE = 2
    SETUP = 3
    PLAY = 4
    GET_PARAMETER = 5
    TEARDOWN = 6

    @classmethod
    def from_token(cls, token: str) -> 'RTSPMethod':
        """Map a wire-level method token to a method, ignoring case."""
        member = cls.__members__.get(token.upper())
        if member is None or member is cls.UNSUPPORTED:
            return cls.UNSUPPORTED
        return member


SUPPORTED_METHODS = [m for m in RTSPMethod if m is not RTSPMethod.UNSUPPORTED]


class RTSPStatusCode(IntEnum):
    """RTSP response status codes."""
    # 2xx Success
    OK = 200

    # 4xx Client Error
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    NOT_ACCEPTABLE = 406

    # 5xx Server Error
    INTERNAL_SERVER_ERROR = 500


# Status code reason phrases
STATUS_PHRASES: Dict[int, str] = {
    200: "OK",
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    406: "Not Acceptable",
    500: "Internal Server Error",
}


def get_status_phrase(code: int) -> str:
    """Get the reason phrase for an RTSP status code."""
    return STATUS_PHRASES.get(code, "Unknown")


def format_date(timestamp: Optional[float] = None) -> str:
    """Format a Date header value (RFC 1123, always GMT)."""
    return format_timestamp(time.time() if timestamp is None else timestamp)


def parse_transport_header(transport: str) -> Dict[str, Union[str, bool]]:
    """Parse an RTSP Transport header.

    Args:
        transport: The Transport header value

    Returns:
        Dictionary of transport parameters
    """
    params = {}
    parts = transport.split(';')

    for part in parts:
        part = part.strip()
        if not part:
            continue
        if '=' in part:
            key, value = part.split('=', 1)
            params[key.strip()] = value.strip()
        else:
            # Protocol specification like RTP/AVP or RTP/AVP/UDP
            if '/' in part:
                params['protocol'] = part
            else:
                params[part] = True

    return params


def build_transport_header(params: Dict[str, Union[str, bool]]) -> str:
    """Build an RTSP Transport header from parameters.

    Args:
        params: Dictionary of transport parameters

    Returns:
        Formatted Transport header value
    """
    parts = []

    # Protocol must come first
    if 'protocol' in params:
        parts.append(params['protocol'])

    for key, value in params.items():
        if key == 'protocol':
            continue
        if value is True:
            parts.append(key)
        else:
            parts.append(f'{key}={value}')

    return ';'.join(parts)
