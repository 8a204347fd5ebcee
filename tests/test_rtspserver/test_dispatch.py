# Copyright (c) 2025 rtspreplay contributors
# This file is part of rtspreplay.

"""Tests for RTSP method dispatch."""

import os
import shutil
import tempfile
import unittest
from unittest import mock

from rtspreplay.rtspserver.dispatch import MethodDispatcher
from rtspreplay.rtspserver.message import RTSPRequest
from rtspreplay.rtspserver.session import MediaKind, RTSPSession
from rtspreplay.rtspserver.transport import PortAllocator


IPC_SDP = (
    "v=0\r\n"
    "o=- 1700000000 1 IN IP4 192.168.1.64\r\n"
    "s=Media Presentation\r\n"
    "t=0 0\r\n"
    "m=video 0 RTP/AVP 96\r\n"
    "a=rtpmap:96 H264/90000\r\n"
    "a=control:trackID=1\r\n"
    "m=audio 0 RTP/AVP 8\r\n"
    "a=rtpmap:8 PCMA/8000\r\n"
    "a=control:trackID=2\r\n"
)

CAM_SDP = (
    "v=0\r\n"
    "s=Single track\r\n"
    "m=video 0 RTP/AVP 96\r\n"
    "a=control:track1\r\n"
)


class DispatchTestCase(unittest.TestCase):
    """Base class setting up a media root and one connection."""

    def setUp(self):
        self.root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.root)

        self.allocator = PortAllocator()
        self.dispatcher = MethodDispatcher(self.root + '/', self.allocator)

        self.session = RTSPSession(client_address=('192.168.1.20', 51000))
        self.connection = mock.Mock()
        self.connection.client_address = ('192.168.1.20', 51000)
        self.cseq = 0

    def write_resource(self, name, sdp, kinds=('video', 'audio')):
        with open(os.path.join(self.root, f'{name}.sdp'), 'w') as f:
            f.write(sdp)
        for kind in kinds:
            with open(os.path.join(self.root, f'{name}-{kind}.rtpdump'), 'wb') as f:
                f.write(b'#!rtpplay1.0 127.0.0.1/5000\n')

    def request(self, method, uri, session=None, **headers):
        self.cseq += 1
        lines = [f"{method} {uri} RTSP/1.0", f"CSeq: {self.cseq}"]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        data = ("\r\n".join(lines) + "\r\n\r\n").encode('utf-8')
        request = RTSPRequest.parse(
            data,
            session=session or self.session,
            connection=self.connection,
        )
        return self.dispatcher.dispatch(request)

    def setup_track(self, uri, client_port='5000-5001'):
        return self.request('SETUP', uri, Transport=f'RTP/AVP/UDP;unicast;client_port={client_port}')


class TestCommonHeaders(DispatchTestCase):

    def test_cseq_and_server(self):
        response = self.request('OPTIONS', 'rtsp://127.0.0.1:8554/ipc')

        self.assertEqual(response.headers['CSeq'], '1')
        self.assertTrue(response.headers['Server'].startswith('rtspreplay/'))

    def test_session_echo(self):
        self.cseq = 9
        response = self.request('GET_PARAMETER', 'rtsp://h/ipc', Session='f00d')

        self.assertEqual(response.headers['CSeq'], '10')
        self.assertEqual(response.headers['Session'], 'f00d')


class TestOptions(DispatchTestCase):

    def test_options(self):
        response = self.request('OPTIONS', 'rtsp://127.0.0.1:8554/ipc')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.headers['Public'],
            'OPTIONS, DESCRIBE, SETUP, PLAY, GET_PARAMETER, TEARDOWN',
        )
        self.assertIn('Date', response.headers)
        self.assertEqual(response.body, '')

    def test_lowercase_method(self):
        response = self.request('options', 'rtsp://127.0.0.1:8554/ipc')

        self.assertEqual(response.status_code, 200)
        self.assertIn('Public', response.headers)


class TestUnsupportedMethod(DispatchTestCase):

    def test_record(self):
        """Test an unknown method gets 405 without Public header or body."""
        response = self.request('RECORD', 'rtsp://127.0.0.1:8554/ipc')

        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.reason, 'Method Not Allowed')
        self.assertNotIn('Public', response.headers)
        self.assertNotIn('Content-Length', response.headers)
        self.assertEqual(response.body, '')
        self.assertEqual(response.headers['CSeq'], '1')

    def test_pause(self):
        response = self.request('PAUSE', 'rtsp://127.0.0.1:8554/ipc')

        self.assertEqual(response.status_code, 405)


class TestDescribe(DispatchTestCase):

    def test_describe(self):
        """Test a resource with both captures present."""
        self.write_resource('ipc', IPC_SDP)

        response = self.request('DESCRIBE', 'rtsp://127.0.0.1:8554/ipc', Accept='application/sdp')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.body, IPC_SDP)
        self.assertEqual(response.headers['Content-Type'], 'application/sdp')
        self.assertEqual(response.headers['Content-Length'], str(len(IPC_SDP.encode('utf-8'))))

        streams = self.session.streams
        self.assertEqual([s.kind for s in streams], [MediaKind.VIDEO, MediaKind.AUDIO])
        self.assertEqual(streams[0].capture_path, os.path.join(self.root, 'ipc-video.rtpdump'))
        self.assertEqual(streams[1].capture_path, os.path.join(self.root, 'ipc-audio.rtpdump'))

    def test_describe_returns_document_bytes(self):
        """Test the body is the file as stored, CRLF line endings included."""
        data = b"v=0\r\nm=video 0 RTP/AVP 96\r\na=control:track1\r\n"
        with open(os.path.join(self.root, 'cam.sdp'), 'wb') as f:
            f.write(data)
        with open(os.path.join(self.root, 'cam-video.rtpdump'), 'wb') as f:
            f.write(b'#!rtpplay1.0 127.0.0.1/5000\n')

        response = self.request('DESCRIBE', 'rtsp://h/cam')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.body.encode('utf-8'), data)
        self.assertEqual(response.headers['Content-Length'], str(len(data)))
        self.assertTrue(response.to_bytes().endswith(b"\r\n\r\n" + data))

    def test_nested_path(self):
        os.mkdir(os.path.join(self.root, 'cams'))
        self.write_resource('cams/front', CAM_SDP, kinds=('video',))

        response = self.request('DESCRIBE', 'rtsp://127.0.0.1:8554/cams/front')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(self.session.streams), 1)

    def test_empty_path(self):
        """Test DESCRIBE without a resource path."""
        response = self.request('DESCRIBE', 'rtsp://127.0.0.1:8554')

        self.assertEqual(response.status_code, 406)
        self.assertIn('Warning', response.headers)
        self.assertEqual(response.body, '')

        response = self.request('DESCRIBE', 'rtsp://127.0.0.1:8554/')

        self.assertEqual(response.status_code, 406)

    def test_missing_description(self):
        response = self.request('DESCRIBE', 'rtsp://127.0.0.1:8554/nothing')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.body, '')
        self.assertEqual(self.session.streams, [])

    def test_missing_capture(self):
        """Test a resource with one capture missing is not found at all."""
        self.write_resource('ipc', IPC_SDP, kinds=('video',))

        response = self.request('DESCRIBE', 'rtsp://127.0.0.1:8554/ipc')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.session.streams, [])

    def test_parent_directory(self):
        response = self.request('DESCRIBE', 'rtsp://127.0.0.1:8554/../etc/passwd')

        self.assertEqual(response.status_code, 404)

    def test_unreadable_description(self):
        self.write_resource('ipc', IPC_SDP)

        with mock.patch('builtins.open', side_effect=PermissionError('denied')):
            response = self.request('DESCRIBE', 'rtsp://127.0.0.1:8554/ipc')

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.body, '')


class TestSetup(DispatchTestCase):

    def setUp(self):
        super().setUp()
        self.write_resource('ipc', IPC_SDP)

    def describe(self):
        response = self.request('DESCRIBE', 'rtsp://127.0.0.1:8554/ipc')
        self.assertEqual(response.status_code, 200)

    def test_setup_before_describe(self):
        response = self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=1')

        self.assertEqual(response.status_code, 400)
        self.assertNotIn('Transport', response.headers)

    def test_setup(self):
        """Test the first SETUP gets the first server port pair."""
        self.describe()

        response = self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=1')

        self.assertEqual(response.status_code, 200)
        self.assertIn('client_port=5000-5001;server_port=20000-20001', response.headers['Transport'])
        self.assertEqual(
            response.headers['Session'],
            f'{self.session.session_id};timeout=60',
        )
        self.assertIn('Date', response.headers)

        video = self.session.streams[0]
        self.assertEqual(video.client_port, 5000)
        self.assertEqual(video.server_port, 20000)

    def test_successive_setups(self):
        """Test server ports strictly increase by two, across sessions too."""
        self.describe()
        first = self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=1')
        second = self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=2', '5002-5003')

        other = RTSPSession(client_address=('192.168.1.21', 52000))
        self.request('DESCRIBE', 'rtsp://127.0.0.1:8554/ipc', session=other)
        third = self.request(
            'SETUP', 'rtsp://127.0.0.1:8554/ipc/trackID=1', session=other,
            Transport='RTP/AVP/UDP;unicast;client_port=6000-6001',
        )

        self.assertIn('server_port=20000-20001', first.headers['Transport'])
        self.assertIn('server_port=20002-20003', second.headers['Transport'])
        self.assertIn('server_port=20004-20005', third.headers['Transport'])
        self.assertEqual(self.session.streams[1].server_port, 20002)

    def test_unmatched_track(self):
        self.describe()

        response = self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=7')

        self.assertEqual(response.status_code, 404)

    def test_missing_transport(self):
        self.describe()

        response = self.request('SETUP', 'rtsp://127.0.0.1:8554/ipc/trackID=1')

        self.assertEqual(response.status_code, 400)

    def test_transport_without_client_port(self):
        self.describe()

        response = self.request(
            'SETUP', 'rtsp://127.0.0.1:8554/ipc/trackID=1',
            Transport='RTP/AVP/TCP;unicast;interleaved=0-1',
        )

        self.assertEqual(response.status_code, 400)
        self.assertIsNone(self.session.streams[0].server_port)
        self.assertEqual(self.allocator.next_port, 20000)


class TestPlayback(DispatchTestCase):
    """Tests for PLAY, GET_PARAMETER and TEARDOWN."""

    def setUp(self):
        super().setUp()
        self.write_resource('ipc', IPC_SDP)
        self.request('DESCRIBE', 'rtsp://127.0.0.1:8554/ipc')

    def test_play_starts_every_negotiated_stream(self):
        self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=1')
        self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=2', '5002-5003')

        response = self.request('PLAY', 'rtsp://127.0.0.1:8554/ipc/', Session=self.session.session_id)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.body, '')
        self.assertIn('Date', response.headers)
        self.assertEqual(response.headers['Session'], self.session.session_id)
        self.connection.supervisor.start.assert_has_calls([
            mock.call(self.session.streams[0], '192.168.1.20'),
            mock.call(self.session.streams[1], '192.168.1.20'),
        ])
        self.connection.close_soon.assert_not_called()

    def test_play_skips_streams_not_set_up(self):
        self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=2')

        self.request('PLAY', 'rtsp://127.0.0.1:8554/ipc/')

        self.connection.supervisor.start.assert_called_once_with(
            self.session.streams[1], '192.168.1.20',
        )

    def test_play_skips_playing_streams(self):
        self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=1')
        self.session.streams[0].process = mock.Mock()

        self.request('PLAY', 'rtsp://127.0.0.1:8554/ipc/')

        self.connection.supervisor.start.assert_not_called()

    def test_play_start_failure(self):
        """Test a failed start does not stop the other streams but ends the session."""
        self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=1')
        self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=2', '5002-5003')
        self.connection.supervisor.start.side_effect = [FileNotFoundError('rtpplay'), None]

        response = self.request('PLAY', 'rtsp://127.0.0.1:8554/ipc/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.connection.supervisor.start.call_count, 2)
        self.connection.supervisor.stop.assert_not_called()
        self.connection.close_soon.assert_called_once_with()

    def test_get_parameter(self):
        response = self.request('GET_PARAMETER', 'rtsp://127.0.0.1:8554/ipc/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.body, '')
        self.assertIn('Date', response.headers)

    def test_teardown(self):
        self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=1')

        response = self.request('TEARDOWN', 'rtsp://127.0.0.1:8554/ipc/')

        self.assertEqual(response.status_code, 200)
        self.connection.supervisor.stop_all.assert_called_once_with()
        self.assertEqual(self.session.streams, [])

    def test_teardown_without_playback(self):
        """Test TEARDOWN succeeds on a fresh session too."""
        session = RTSPSession(client_address=('192.168.1.20', 51001))

        response = self.request('TEARDOWN', 'rtsp://127.0.0.1:8554/ipc/', session=session)

        self.assertEqual(response.status_code, 200)

    def test_setup_after_teardown(self):
        self.request('TEARDOWN', 'rtsp://127.0.0.1:8554/ipc/')

        response = self.setup_track('rtsp://127.0.0.1:8554/ipc/trackID=1')

        self.assertEqual(response.status_code, 400)


if __name__ == '__main__':
    unittest.main()
