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

"""RTSP server package for rtspreplay.

This package provides an RTSP control-plane server that replays
pre-recorded RTP captures to standard RTSP clients. Media transmission is
delegated to an external replayer process (rtpplay) per stream.

Features:
- RFC 2326 OPTIONS, DESCRIBE, SETUP, PLAY, GET_PARAMETER and TEARDOWN
- Resources described by SDP documents stored on disk
- Unicast UDP transport with server port allocation
- Replayer supervision tied to the client connection
"""

from rtspreplay.rtspserver.server import RTSPServer, RTSPClientHandler, run_rtsp_server
from rtspreplay.rtspserver.session import RTSPSession, MediaStream, MediaKind
from rtspreplay.rtspserver.message import RTSPRequest, RTSPResponse, RequestFramer
from rtspreplay.rtspserver.dispatch import MethodDispatcher
from rtspreplay.rtspserver.replayer import StreamSupervisor
from rtspreplay.rtspserver.sdp import resolve_resource
from rtspreplay.rtspserver.transport import PortAllocator, negotiate_transport


__all__ = [
    'RTSPServer',
    'RTSPClientHandler',
    'run_rtsp_server',
    'RTSPSession',
    'MediaStream',
    'MediaKind',
    'RTSPRequest',
    'RTSPResponse',
    'RequestFramer',
    'MethodDispatcher',
    'StreamSupervisor',
    'resolve_resource',
    'PortAllocator',
    'negotiate_transport',
]
