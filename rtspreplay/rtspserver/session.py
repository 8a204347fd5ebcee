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

"""RTSP Session state."""

import logging
import uuid
from enum import Enum
from typing import Any, List, Optional, Tuple
from dataclasses import dataclass, field


class MediaKind(Enum):
    """Kinds of elementary streams a resource can carry."""
    AUDIO = "audio"
    VIDEO = "video"


@dataclass
class MediaStream:
    """One sub-stream of a media resource, backed by a capture file."""
    kind: MediaKind
    control: str
    capture_path: str

    # Filled in by SETUP
    client_port: Optional[int] = None
    server_port: Optional[int] = None

    # tornado.process.Subprocess while the replayer runs
    process: Optional[Any] = None

    @property
    def is_setup(self) -> bool:
        return self.client_port is not None and self.server_port is not None

    @property
    def is_playing(self) -> bool:
        return self.process is not None


@dataclass
class RTSPSession:
    """Server-side state of one client connection."""
    client_address: Tuple[str, int]
    session_id: str = field(default_factory=lambda: RTSPSession.generate_session_id())
    timeout: int = 60

    # Resolved by DESCRIBE, in description document order
    streams: List[MediaStream] = field(default_factory=list)

    @staticmethod
    def generate_session_id() -> str:
        """Generate a random session ID."""
        return uuid.uuid4().hex

    @property
    def session_header(self) -> str:
        """Session header value advertising the idle timeout."""
        return f"{self.session_id};timeout={int(self.timeout)}"

    def bind_streams(self, streams: List[MediaStream]):
        """Replace the resolved streams of this session."""
        self.streams = list(streams)
        logging.debug(
            f"Session {self.session_id}: bound {len(self.streams)} streams "
            f"({', '.join(s.kind.value for s in self.streams)})"
        )

    def find_stream(self, uri: str) -> Optional[MediaStream]:
        """Find the first stream whose control suffix ends the request URI."""
        for stream in self.streams:
            if uri.endswith(stream.control):
                return stream
        return None

    def teardown(self):
        """Drop the stream bindings; replayers must already be stopped."""
        self.streams = []
        logging.debug(f"Session {self.session_id} torn down")
