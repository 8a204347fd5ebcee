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

"""SDP (Session Description Protocol) resolution for stored media resources.

A resource ``<root>/<path>`` is described by ``<root>/<path>.sdp``. Every
audio or video media section carrying an ``a=control:`` attribute becomes a
MediaStream backed by the capture file ``<root>/<path>-<kind>.rtpdump``.
"""

import os
from typing import List, Optional

from rtspreplay.rtspserver.session import MediaKind, MediaStream

SDP_CONTENT_TYPE = "application/sdp"
SDP_EXTENSION = ".sdp"
CAPTURE_EXTENSION = ".rtpdump"

_MEDIA_PREFIXES = {
    "m=video": MediaKind.VIDEO,
    "m=audio": MediaKind.AUDIO,
}
_CONTROL_PREFIX = "a=control:"


def description_path(root: str, path: str) -> str:
    return f"{root}{path}{SDP_EXTENSION}"


def capture_path(path_prefix: str, kind: MediaKind) -> str:
    return f"{path_prefix}-{kind.value}{CAPTURE_EXTENSION}"


def _media_kind(line: str) -> Optional[MediaKind]:
    for prefix, kind in _MEDIA_PREFIXES.items():
        if line.startswith(prefix):
            return kind
    return None


def resolve_resource(sdp: str, path_prefix: str) -> List[MediaStream]:
    """Turn a description document into its streamable sub-resources.

    The document is folded line by line: a media line sets the pending kind,
    a control attribute under a pending kind sets the pending control, and
    once both are known a stream is emitted and both are reset. Lines that
    match neither are ignored, so this is not a full SDP parser.

    Args:
        sdp: Description document text
        path_prefix: Media root joined with the resource path

    Returns:
        Streams in document order
    """
    streams = []
    kind = None
    control = None

    for line in sdp.splitlines():
        if line.startswith("m="):
            # other media sections (application, text...) are not streamable
            kind = _media_kind(line)
        elif line.startswith(_CONTROL_PREFIX) and kind is not None:
            control = line[len(_CONTROL_PREFIX):].strip()

        if kind is not None and control:
            streams.append(MediaStream(
                kind=kind,
                control=control,
                capture_path=capture_path(path_prefix, kind),
            ))
            kind = None
            control = None

    return streams


def missing_captures(streams: List[MediaStream]) -> List[str]:
    """Get the capture paths that do not exist or cannot be read."""
    return [
        s.capture_path for s in streams
        if not (os.path.isfile(s.capture_path) and os.access(s.capture_path, os.R_OK))
    ]
