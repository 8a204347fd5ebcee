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

"""RTSP method dispatch.

The dispatcher holds no per-connection state: everything it needs comes from
the request, which carries the session and the connection it arrived on.
"""

import logging
import os
from typing import Callable, Dict
from urllib.parse import urlparse

import rtspreplay
from rtspreplay.rtspserver.message import RTSPRequest, RTSPResponse
from rtspreplay.rtspserver.protocol import (
    RTSPMethod, RTSPStatusCode, SUPPORTED_METHODS, TransportError, format_date,
)
from rtspreplay.rtspserver.sdp import (
    SDP_CONTENT_TYPE, description_path, missing_captures, resolve_resource,
)
from rtspreplay.rtspserver.transport import PortAllocator, negotiate_transport

Handler = Callable[[RTSPRequest, RTSPResponse], None]


class MethodDispatcher:
    """Routes requests to the method handlers."""

    def __init__(
        self,
        media_root: str,
        port_allocator: PortAllocator,
        server_name: str = 'rtspreplay',
    ):
        """Initialize the dispatcher.

        Args:
            media_root: Directory holding description documents and captures
            port_allocator: Server port allocator shared by all connections
            server_name: Product name sent in the Server header
        """
        self.media_root = media_root.rstrip('/')
        self.port_allocator = port_allocator
        self.server_header = f"{server_name}/{rtspreplay.VERSION}"

        self.handlers: Dict[RTSPMethod, Handler] = {
            RTSPMethod.OPTIONS: self.handle_options,
            RTSPMethod.DESCRIBE: self.handle_describe,
            RTSPMethod.SETUP: self.handle_setup,
            RTSPMethod.PLAY: self.handle_play,
            RTSPMethod.GET_PARAMETER: self.handle_get_parameter,
            RTSPMethod.TEARDOWN: self.handle_teardown,
        }

    def dispatch(self, request: RTSPRequest) -> RTSPResponse:
        """Handle one request.

        Args:
            request: Parsed request, annotated with its session and connection

        Returns:
            Response to send back
        """
        response = RTSPResponse.for_request(request)
        response.headers['Server'] = self.server_header

        method = request.method_type
        logging.debug(f"handler method: {method.name.lower()}")

        handler = self.handlers.get(method)
        if handler:
            handler(request, response)
        else:
            response.set_status(RTSPStatusCode.METHOD_NOT_ALLOWED)
            logging.warning(f"RTSP method not allowed: {request.method}")

        logging.info(f"RTSP {request.method} {request.uri} -> {response.status_code}")
        return response

    def handle_options(self, request: RTSPRequest, response: RTSPResponse):
        response.headers['Public'] = ', '.join(m.name for m in SUPPORTED_METHODS)
        response.headers['Date'] = format_date()

    def handle_describe(self, request: RTSPRequest, response: RTSPResponse):
        """Resolve the requested resource and return its description."""
        path = urlparse(request.uri).path
        if not path or path == '/':
            response.set_status(RTSPStatusCode.NOT_ACCEPTABLE)
            response.headers['Warning'] = '01 rtspreplay "pathname required"'
            return

        if '..' in path.split('/'):
            logging.warning(f"Refusing resource outside media root: {path}")
            response.set_status(RTSPStatusCode.NOT_FOUND)
            return

        prefix = f"{self.media_root}{path}"
        sdp_path = description_path(self.media_root, path)
        logging.debug(f"request resource: {prefix}")

        if not os.path.isfile(sdp_path):
            response.set_status(RTSPStatusCode.NOT_FOUND)
            return

        try:
            # newline='' keeps the document's CRLF line endings intact
            with open(sdp_path, 'r', encoding='utf-8', newline='') as f:
                sdp = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logging.error(f"error occurred when reading {sdp_path}: {e}")
            response.set_status(RTSPStatusCode.INTERNAL_SERVER_ERROR)
            return

        streams = resolve_resource(sdp, prefix)
        missing = missing_captures(streams)
        if missing:
            logging.warning(f"Missing captures for {path}: {', '.join(missing)}")
            response.set_status(RTSPStatusCode.NOT_FOUND)
            return

        request.session.bind_streams(streams)
        response.set_body(sdp, SDP_CONTENT_TYPE)

    def handle_setup(self, request: RTSPRequest, response: RTSPResponse):
        """Negotiate the transport of one stream of the described resource."""
        session = request.session
        if not session.streams:
            response.set_status(RTSPStatusCode.BAD_REQUEST)
            return

        stream = session.find_stream(request.uri)
        if not stream:
            response.set_status(RTSPStatusCode.NOT_FOUND)
            return

        transport = request.get_header('Transport')
        logging.debug(f"transport: {transport}")
        if not transport:
            response.set_status(RTSPStatusCode.BAD_REQUEST)
            return

        try:
            negotiation = negotiate_transport(transport, self.port_allocator)
        except TransportError as e:
            logging.warning(f"RTSP SETUP: {e}")
            response.set_status(RTSPStatusCode.BAD_REQUEST)
            return

        stream.client_port = negotiation.client_port
        stream.server_port = negotiation.server_port

        response.headers['Transport'] = negotiation.header
        response.headers['Date'] = format_date()
        response.headers['Session'] = session.session_header

    def handle_play(self, request: RTSPRequest, response: RTSPResponse):
        """Start the replayer of every negotiated stream."""
        response.headers['Date'] = format_date()

        connection = request.connection
        session = request.session
        logging.info(f"Session {session.session_id}: start to send data")

        failed = False
        for stream in session.streams:
            if not stream.is_setup:
                logging.warning(
                    f"Session {session.session_id}: {stream.kind.value} was never set up, skipping"
                )
                continue
            if stream.is_playing:
                continue
            try:
                connection.supervisor.start(stream, connection.client_address[0])
            except OSError as e:
                logging.error(f"Failed to start replayer for {stream.kind.value}: {e}")
                failed = True

        if failed:
            connection.close_soon()

    def handle_get_parameter(self, request: RTSPRequest, response: RTSPResponse):
        logging.debug("receive client get_parameter request")
        response.headers['Date'] = format_date()

    def handle_teardown(self, request: RTSPRequest, response: RTSPResponse):
        """Stop sending data; answers OK whether or not anything was playing."""
        session = request.session
        logging.info(f"Session {session.session_id}: stop send data")
        request.connection.supervisor.stop_all()
        session.teardown()
