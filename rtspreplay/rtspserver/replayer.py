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

"""Supervision of the external stream replayer.

Every playing MediaStream is transmitted by its own replayer process
(``rtpplay`` by default), invoked as::

    rtpplay -T -f <capture> -s <server port> <client address>/<client port>

The replayer is expected to exit on SIGINT and to exit with status zero once
the capture has been sent.
"""

import logging
import os
import shutil
import signal
import subprocess
from typing import Callable, Iterable, List, Optional

from tornado.ioloop import IOLoop
from tornado.iostream import StreamClosedError
from tornado.process import Subprocess

from rtspreplay.rtspserver.session import MediaStream

DEFAULT_REPLAYER = 'rtpplay'

_READ_CHUNK = 4096


class StreamSupervisor:
    """Starts, watches and stops the replayers of one connection."""

    def __init__(
        self,
        binary: str = DEFAULT_REPLAYER,
        on_exit: Optional[Callable[[MediaStream, int], None]] = None,
    ):
        """Initialize the supervisor.

        Args:
            binary: Replayer executable
            on_exit: Called with the stream and return code whenever one of
                the replayers exits
        """
        self.binary = binary
        self.on_exit = on_exit

        # Streams whose replayer was started and has not exited yet
        self.streams: List[MediaStream] = []

    def build_command(self, stream: MediaStream, address: str) -> List[str]:
        return [
            self.binary,
            '-T',
            '-f', stream.capture_path,
            '-s', str(stream.server_port),
            f'{address}/{stream.client_port}',
        ]

    def start(self, stream: MediaStream, address: str):
        """Start transmitting a stream to a client.

        Args:
            stream: Negotiated stream
            address: Client host the packets are sent to

        Raises:
            OSError: if the replayer could not be spawned
        """
        if shutil.which(self.binary) is None:
            raise FileNotFoundError(f"replayer not found: {self.binary}")

        cmd = self.build_command(stream, address)
        logging.info(f"Starting replayer: {' '.join(cmd)}")

        process = Subprocess(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=Subprocess.STREAM,
            stderr=Subprocess.STREAM,
        )
        stream.process = process
        self.streams.append(stream)

        io_loop = IOLoop.current()
        io_loop.spawn_callback(self._read_stdout, stream, process)
        io_loop.spawn_callback(self._read_stderr, stream, process)
        process.set_exit_callback(lambda code: self._on_process_exit(stream, process, code))

    def stop(self, stream: MediaStream):
        """Ask the replayer of a stream to stop; no-op if none is running."""
        process = stream.process
        if process is None or process.returncode is not None:
            return

        logging.info(f"Stopping replayer for {stream.kind.value} (pid {process.pid})")
        try:
            os.kill(process.pid, signal.SIGINT)
        except ProcessLookupError:
            logging.debug(f"Replayer {process.pid} already gone")

    def stop_all(self, streams: Optional[Iterable[MediaStream]] = None):
        """Stop the given streams, or every stream started by this supervisor."""
        for stream in list(self.streams if streams is None else streams):
            self.stop(stream)

    async def _read_stdout(self, stream: MediaStream, process: Subprocess):
        """Log the replayer's standard output."""
        try:
            while True:
                chunk = await process.stdout.read_bytes(_READ_CHUNK, partial=True)
                text = chunk.decode('utf-8', errors='replace').strip()
                if text:
                    logging.debug(f"replayer {stream.kind.value}: {text}")
        except StreamClosedError:
            pass

    async def _read_stderr(self, stream: MediaStream, process: Subprocess):
        """Any error output from the replayer ends its playback."""
        try:
            while True:
                chunk = await process.stderr.read_bytes(_READ_CHUNK, partial=True)
                text = chunk.decode('utf-8', errors='replace').strip()
                logging.error(f"replayer {stream.kind.value} error: {text}")
                if process.returncode is None:
                    try:
                        os.kill(process.pid, signal.SIGINT)
                    except ProcessLookupError:
                        pass
        except StreamClosedError:
            pass

    def _on_process_exit(self, stream: MediaStream, process: Subprocess, returncode: int):
        if returncode != 0:
            logging.warning(
                f"Replayer for {stream.kind.value} exited, code={returncode}"
            )
        else:
            logging.info(f"Replayer for {stream.kind.value} finished")

        if stream.process is process:
            stream.process = None
        self.streams = [s for s in self.streams if s is not stream]

        if self.on_exit:
            self.on_exit(stream, returncode)
