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

"""RTSP request/response messages and request framing."""

import logging
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from rtspreplay.rtspserver.protocol import (
    RTSP_VERSION, LINE_SEPARATOR, HEADER_TERMINATOR, MAX_MESSAGE_SIZE,
    MessageTooLargeError, RTSPMethod, RTSPParseError, get_status_phrase,
)
from rtspreplay.rtspserver.session import RTSPSession


@dataclass
class RTSPRequest:
    """Parsed RTSP request."""
    method: str
    uri: str
    version: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b''

    # Set by the connection that received the request
    connection: Optional[Any] = field(default=None, repr=False)
    session: Optional[RTSPSession] = field(default=None, repr=False)

    @classmethod
    def parse(
        cls,
        data: bytes,
        session: Optional[RTSPSession] = None,
        connection: Optional[Any] = None,
    ) -> 'RTSPRequest':
        """Parse an RTSP request from bytes.

        Header lines that are not of the form ``Name: value`` are skipped.

        Args:
            data: Raw request data
            session: Session of the connection the request arrived on
            connection: Connection the request arrived on

        Returns:
            Parsed request

        Raises:
            RTSPParseError: if the request line is not METHOD URI VERSION
        """
        if HEADER_TERMINATOR in data:
            header_part, body = data.split(HEADER_TERMINATOR, 1)
        else:
            header_part = data
            body = b''

        lines = header_part.decode('utf-8', errors='replace').split(LINE_SEPARATOR)

        request_line = lines[0].split()
        if len(request_line) != 3:
            raise RTSPParseError(f"malformed request line: {lines[0]!r}")

        method, uri, version = request_line

        headers = {}
        for line in lines[1:]:
            if line.find(':') <= 0:
                continue
            key, value = line.split(':', 1)
            headers[key.strip()] = value.strip()

        return cls(
            method=method,
            uri=uri,
            version=version,
            headers=headers,
            body=body,
            connection=connection,
            session=session,
        )

    @property
    def method_type(self) -> RTSPMethod:
        return RTSPMethod.from_token(self.method)

    @property
    def cseq(self) -> Optional[str]:
        return self.headers.get('CSeq')

    @property
    def session_id(self) -> Optional[str]:
        return self.headers.get('Session')

    def get_header(self, name: str) -> Optional[str]:
        return self.headers.get(name)


@dataclass
class RTSPResponse:
    """RTSP response builder."""
    status_code: int = 200
    reason: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    def __post_init__(self):
        if not self.reason:
            self.reason = get_status_phrase(self.status_code)

    @classmethod
    def for_request(cls, request: RTSPRequest) -> 'RTSPResponse':
        """Create a 200 response echoing the request's CSeq and Session."""
        response = cls()
        if request.cseq is not None:
            response.headers['CSeq'] = request.cseq
        if request.session_id:
            response.headers['Session'] = request.session_id
        return response

    def set_status(self, code: int, reason: Optional[str] = None):
        self.status_code = int(code)
        self.reason = reason or get_status_phrase(code)

    def set_body(self, body: str, content_type: Optional[str] = None):
        self.body = body
        self.headers['Content-Length'] = str(len(body.encode('utf-8')))
        if content_type:
            self.headers['Content-Type'] = content_type

    def to_string(self) -> str:
        """Serialize the response: status line, headers, blank line, body."""
        lines = [f"{RTSP_VERSION} {self.status_code} {self.reason}"]

        for key, value in self.headers.items():
            lines.append(f"{key}: {value}")

        lines.append("")  # Empty line before body
        lines.append(self.body or "")

        return LINE_SEPARATOR.join(lines)

    def to_bytes(self) -> bytes:
        """Serialize response to bytes."""
        return self.to_string().encode('utf-8')

    __str__ = to_string


class RequestFramer:
    """Reassembles request messages from the bytes of one connection.

    A message is a header block terminated by an empty line, followed by
    Content-Length bytes of body when that header is present.
    """

    def __init__(self):
        self._buffer = b''

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet part of a complete message."""
        return len(self._buffer)

    def feed(self, data: bytes) -> List[bytes]:
        """Add received bytes and return every complete message.

        Args:
            data: Bytes just read from the connection

        Returns:
            Complete raw messages in arrival order

        Raises:
            MessageTooLargeError: if a message would exceed MAX_MESSAGE_SIZE
        """
        self._buffer += data
        messages = []

        # blank lines between messages are allowed
        self._buffer = self._buffer.lstrip(b'\r\n')
        while HEADER_TERMINATOR in self._buffer:
            header_end = self._buffer.index(HEADER_TERMINATOR) + len(HEADER_TERMINATOR)

            # Check Content-Length for body
            header_part = self._buffer[:header_end].decode('utf-8', errors='replace')
            content_length = 0
            for line in header_part.split(LINE_SEPARATOR):
                if line.lower().startswith('content-length:'):
                    try:
                        content_length = max(0, int(line.split(':', 1)[1].strip()))
                    except ValueError:
                        logging.debug(f"Ignoring invalid Content-Length: {line!r}")
                    break

            total_length = header_end + content_length
            if total_length > MAX_MESSAGE_SIZE:
                raise MessageTooLargeError(
                    f"request of {total_length} bytes exceeds {MAX_MESSAGE_SIZE}"
                )
            if len(self._buffer) < total_length:
                break

            messages.append(self._buffer[:total_length])
            self._buffer = self._buffer[total_length:].lstrip(b'\r\n')

        # headers still incomplete
        if HEADER_TERMINATOR not in self._buffer and len(self._buffer) > MAX_MESSAGE_SIZE:
            raise MessageTooLargeError(
                f"no end of headers within {MAX_MESSAGE_SIZE} bytes"
            )

        return messages
