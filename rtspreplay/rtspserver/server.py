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

"""RTSP Server replaying pre-recorded captures.

Every accepted connection gets its own session and handler task. Requests on
a connection are handled strictly one after the other.
"""

import asyncio
import logging
from typing import List, Optional

from rtspreplay.rtspserver.dispatch import MethodDispatcher
from rtspreplay.rtspserver.message import RTSPRequest, RTSPResponse, RequestFramer
from rtspreplay.rtspserver.protocol import (
    DEFAULT_RTSP_PORT, DEFAULT_RTP_BASE_PORT, MessageTooLargeError,
)
from rtspreplay.rtspserver.replayer import DEFAULT_REPLAYER, StreamSupervisor
from rtspreplay.rtspserver.session import MediaStream, RTSPSession
from rtspreplay.rtspserver.transport import PortAllocator

_READ_SIZE = 8192


class RTSPClientHandler:
    """Handles a single RTSP client connection."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        server: 'RTSPServer',
    ):
        self.reader = reader
        self.writer = writer
        self.server = server
        self.running = True

        # Get client address
        peername = writer.get_extra_info('peername')
        self.client_address = peername[:2] if peername else ('unknown', 0)

        self.session = RTSPSession(
            client_address=self.client_address,
            timeout=server.session_timeout,
        )
        self.supervisor = StreamSupervisor(
            binary=server.replayer_binary,
            on_exit=self._on_replayer_exit,
        )
        self.framer = RequestFramer()

    async def handle(self):
        """Main handler loop for the client connection."""
        logging.info(
            f"RTSP client connected from {self.client_address}, "
            f"session {self.session.session_id}"
        )

        try:
            while self.running:
                try:
                    data = await self.reader.read(_READ_SIZE)
                except (ConnectionResetError, ConnectionAbortedError, BrokenPipeError):
                    # Client disconnected abruptly - this is normal
                    logging.debug(f"Client {self.client_address} disconnected abruptly")
                    break

                if not data:
                    break

                for message in self.framer.feed(data):
                    if not self.running:
                        break
                    response = self.handle_message(message)
                    self.writer.write(response.to_bytes())
                    await self.writer.drain()

        except asyncio.CancelledError:
            pass
        except MessageTooLargeError as e:
            logging.warning(f"Dropping RTSP client {self.client_address}: {e}")
        except ConnectionError as e:
            logging.debug(f"Connection to {self.client_address} lost: {e}")
        except Exception as e:
            logging.error(f"Error handling RTSP client {self.client_address}: {e}", exc_info=True)
        finally:
            await self.cleanup()

    def handle_message(self, message: bytes) -> RTSPResponse:
        """Parse and dispatch one raw request.

        Raises:
            RTSPParseError: if the request line is malformed
        """
        logging.debug(f"receive client request:\n{message.decode('utf-8', errors='replace')}")
        request = RTSPRequest.parse(message, session=self.session, connection=self)
        logging.debug(f"parsed request: {request}")

        response = self.server.dispatcher.dispatch(request)
        logging.debug(f"send response:\n{response.to_string()}")
        return response

    def close_soon(self):
        """Close the connection once the pending response has been written."""
        asyncio.get_running_loop().call_soon(self.close)

    def close(self):
        """Close the connection; the handler loop then cleans up."""
        self.running = False
        if not self.writer.is_closing():
            logging.debug(f"Closing connection to {self.client_address}")
            self.writer.close()

    async def cleanup(self):
        """Clean up client connection."""
        self.running = False

        # Session ends with its connection
        self.supervisor.stop_all()
        self.session.teardown()

        try:
            self.writer.close()
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass

        logging.info(f"RTSP client disconnected: {self.client_address}")

    def _on_replayer_exit(self, stream: MediaStream, returncode: int):
        # one stream ending ends the whole session
        logging.info(
            f"Session {self.session.session_id}: {stream.kind.value} replay ended, "
            f"closing connection"
        )
        self.supervisor.stop_all()
        self.close()


class RTSPServer:
    """RTSP Server replaying pre-recorded captures to its clients."""

    def __init__(
        self,
        listen_address: str = '127.0.0.1',
        port: int = DEFAULT_RTSP_PORT,
        media_root: str = '.',
        replayer_binary: str = DEFAULT_REPLAYER,
        rtp_base_port: int = DEFAULT_RTP_BASE_PORT,
        session_timeout: int = 60,
        server_name: str = 'rtspreplay',
    ):
        """Initialize the RTSP server.

        Args:
            listen_address: Address to listen on
            port: Port to listen on (0 picks a free one)
            media_root: Directory holding description documents and captures
            replayer_binary: External replayer executable
            rtp_base_port: First server RTP port handed out by SETUP
            session_timeout: Timeout advertised in the Session header
            server_name: Product name sent in the Server header
        """
        self.listen_address = listen_address
        self.port = port
        self.replayer_binary = replayer_binary
        self.session_timeout = session_timeout

        self.port_allocator = PortAllocator(rtp_base_port)
        self.dispatcher = MethodDispatcher(media_root, self.port_allocator, server_name)

        self._server: Optional[asyncio.AbstractServer] = None
        self._running = False
        self._clients: List[RTSPClientHandler] = []

    @property
    def clients(self) -> List[RTSPClientHandler]:
        return list(self._clients)

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually listened on, once started."""
        if not self._server or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def start(self):
        """Start the RTSP server."""
        if self._running:
            return

        self._running = True

        self._server = await asyncio.start_server(
            self._handle_client,
            self.listen_address,
            self.port,
            reuse_address=True,
        )

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets)
        logging.info(f"RTSP server started on {addrs}")

    async def stop(self):
        """Stop the RTSP server and end every session."""
        self._running = False

        # Close all client connections
        for client in self.clients:
            client.close()

        # Close server
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        logging.info("RTSP server stopped")

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ):
        """Handle a new client connection."""
        handler = RTSPClientHandler(reader, writer, self)
        self._clients.append(handler)
        try:
            await handler.handle()
        finally:
            if handler in self._clients:
                self._clients.remove(handler)


async def run_rtsp_server(
    listen_address: str = '127.0.0.1',
    port: int = DEFAULT_RTSP_PORT,
    media_root: str = '.',
    replayer_binary: str = DEFAULT_REPLAYER,
    rtp_base_port: int = DEFAULT_RTP_BASE_PORT,
    session_timeout: int = 60,
    server_name: str = 'rtspreplay',
):
    """Run the RTSP server until cancelled."""
    server = RTSPServer(
        listen_address=listen_address,
        port=port,
        media_root=media_root,
        replayer_binary=replayer_binary,
        rtp_base_port=rtp_base_port,
        session_timeout=session_timeout,
        server_name=server_name,
    )

    await server.start()

    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        pass
    finally:
        await server.stop()
