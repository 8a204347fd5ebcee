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

"""RTP transport negotiation and server port allocation."""

import logging
import threading
from dataclasses import dataclass

from rtspreplay.rtspserver.protocol import (
    DEFAULT_RTP_BASE_PORT, TransportError,
    parse_transport_header, build_transport_header,
)


class PortAllocator:
    """Hands out server-side RTP/RTCP port pairs.

    Ports only ever move forward; a pair is never handed out twice during
    the lifetime of the allocator.
    """

    def __init__(self, base_port: int = DEFAULT_RTP_BASE_PORT):
        self._next_port = base_port
        self._lock = threading.Lock()

    @property
    def next_port(self) -> int:
        return self._next_port

    def allocate(self) -> int:
        """Reserve the next port pair.

        Returns:
            The RTP port; the RTCP port is the one right after it
        """
        with self._lock:
            port = self._next_port
            self._next_port += 2
        return port


@dataclass
class TransportNegotiation:
    """Outcome of a SETUP transport exchange."""
    client_port: int
    server_port: int
    header: str


def parse_client_port(value: str) -> int:
    """Get the RTP port out of a client_port value like 5000-5001."""
    first = value.split('-', 1)[0].strip()
    try:
        port = int(first)
    except ValueError:
        raise TransportError(f"invalid client_port: {value!r}")
    if not 0 < port < 65536:
        raise TransportError(f"client_port out of range: {value!r}")
    return port


def negotiate_transport(transport: str, allocator: PortAllocator) -> TransportNegotiation:
    """Negotiate unicast UDP delivery for one stream.

    Args:
        transport: Transport header sent by the client
        allocator: Shared server port allocator

    Returns:
        Negotiated ports and the Transport header to answer with

    Raises:
        TransportError: if client_port is missing or invalid
    """
    params = parse_transport_header(transport)
    client_port = params.get('client_port')
    if not client_port or client_port is True:
        raise TransportError(f"no client_port in transport: {transport!r}")

    rtp_port = parse_client_port(client_port)
    server_port = allocator.allocate()

    header = build_transport_header({
        'protocol': 'RTP/AVP/UDP',
        'unicast': True,
        'client_port': client_port,
        'server_port': f"{server_port}-{server_port + 1}",
        'ssrc': '0',
        'mode': '"play"',
    })
    logging.debug(f"Negotiated transport: {header}")

    return TransportNegotiation(
        client_port=rtp_port,
        server_port=server_port,
        header=header,
    )
