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

"""Command line entry point.

    rtspreplay --host=0.0.0.0 --port=8554 --root=/srv/media --verbose
"""

import asyncio
import logging

from tornado.options import define, options, parse_command_line

import rtspreplay
from rtspreplay import settings
from rtspreplay.rtspserver.server import run_rtsp_server

define('host', default=settings.LISTEN, help='host to bind on')
define('port', default=settings.PORT, type=int, help='port to bind on')
define('root', default=settings.MEDIA_ROOT, help='media folder')
define('verbose', default=settings.VERBOSE, type=bool, help='run with verbose logging')
define('replayer', default=settings.REPLAYER_BINARY, help='stream replayer executable')
define('rtp_base_port', default=settings.RTP_BASE_PORT, type=int,
       help='first server RTP port handed out to clients')


def configure_settings():
    """Copy the parsed command line options into the settings module."""
    settings.LISTEN = options.host
    settings.PORT = options.port
    settings.MEDIA_ROOT = options.root
    settings.VERBOSE = options.verbose
    settings.REPLAYER_BINARY = options.replayer
    settings.RTP_BASE_PORT = options.rtp_base_port


def main(args=None):
    parse_command_line(args)
    configure_settings()

    if settings.VERBOSE:
        logging.getLogger().setLevel(logging.DEBUG)

    server_settings = settings.get_server_settings()
    logging.info(
        f"rtspreplay {rtspreplay.VERSION} running on "
        f"{server_settings['listen']}:{server_settings['port']}, "
        f"media root {server_settings['media_root']}"
    )

    try:
        asyncio.run(run_rtsp_server(
            listen_address=server_settings['listen'],
            port=server_settings['port'],
            media_root=server_settings['media_root'],
            replayer_binary=server_settings['replayer_binary'],
            rtp_base_port=server_settings['rtp_base_port'],
            session_timeout=server_settings['session_timeout'],
            server_name=server_settings['server_name'],
        ))
    except KeyboardInterrupt:
        logging.info("interrupted, exiting")


if __name__ == '__main__':
    main()
