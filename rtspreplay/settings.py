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

"""Runtime settings, overridden from the command line by rtspreplay.main."""

from typing import Any, Dict

LISTEN = '127.0.0.1'
PORT = 8554

# directory holding <path>.sdp and <path>-<kind>.rtpdump files
MEDIA_ROOT = '.'

REPLAYER_BINARY = 'rtpplay'
RTP_BASE_PORT = 20000

# advertised in the Session header, not enforced
SESSION_TIMEOUT = 60

SERVER_NAME = 'rtspreplay'

VERBOSE = False


def get_server_settings() -> Dict[str, Any]:
    """Get the settings used to build an RTSPServer."""
    return {
        'listen': LISTEN,
        'port': PORT,
        'media_root': MEDIA_ROOT,
        'replayer_binary': REPLAYER_BINARY,
        'rtp_base_port': RTP_BASE_PORT,
        'session_timeout': SESSION_TIMEOUT,
        'server_name': SERVER_NAME,
    }
