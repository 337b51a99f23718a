"""Tests for the HTTP transport"""

from unittest.mock import Mock

import pytest
import requests
import responses
from requests_toolbelt import MultipartEncoder, MultipartEncoderMonitor

from cloudapi.api.request import Attachment
from cloudapi.api.transport import Transport

from conftest import make_response


@pytest.fixture
def session():
    session = Mock(spec=requests.Session)
    session.headers = {}
    session.request.return_value = make_response(200)
    return session


class TestTransport:
    """Test how calls are handed to requests"""

    def test_session_setup(self, session):
        Transport(max_connections=4, user_agent="test-agent", session=session)

        assert session.headers["User-Agent"] == "test-agent"
        mounted = {call.args[0] for call in session.mount.call_args_list}
        assert mounted == {"https://", "http://"}

    def test_no_redirects_and_streamed(self, session):
        transport = Transport(timeout=7.0, session=session)

        transport.send("GET", "https://api.soundcloud.com/me", params=[("a", "1")])

        kwargs = session.request.call_args.kwargs
        assert kwargs["allow_redirects"] is False
        assert kwargs["stream"] is True
        assert kwargs["timeout"] == 7.0
        assert kwargs["params"] == [("a", "1")]
        assert kwargs["data"] is None

    def test_form_data(self, session):
        Transport(session=session).send("POST", "https://x/y", data=[("a", "1")])

        assert session.request.call_args.kwargs["data"] == [("a", "1")]

    def test_raw_content(self, session):
        Transport(session=session).send("PUT", "https://x/y", content=b"raw", data=[("a", "1")])

        assert session.request.call_args.kwargs["data"] == b"raw"

    def test_multipart(self, session):
        """Test an attachment is streamed with a multipart encoder"""
        attachment = Attachment("track[asset_data]", b"audio", "a.mp3", "audio/mpeg")

        Transport(session=session).send(
            "POST", "https://x/tracks", data=[("track[title]", "Hi")], attachment=attachment
        )

        kwargs = session.request.call_args.kwargs
        encoder = kwargs["data"]
        assert isinstance(encoder, MultipartEncoder)
        assert kwargs["headers"]["Content-Type"] == encoder.content_type
        body = encoder.to_string()
        assert b'name="track[title]"' in body
        assert b'filename="a.mp3"' in body
        assert b"Content-Type: audio/mpeg" in body
        assert b"audio" in body

    def test_multipart_progress(self, session):
        """Test the progress callback sees the whole body go out"""
        progress = Mock()
        attachment = Attachment("f", b"x" * 10000, "a.bin")

        Transport(session=session).send("POST", "https://x/y", attachment=attachment, progress=progress)

        monitor = session.request.call_args.kwargs["data"]
        assert isinstance(monitor, MultipartEncoderMonitor)
        while monitor.read(4096):
            pass
        sent, total = progress.call_args.args
        assert sent == total == monitor.len

    def test_attachment_file_closed(self, session, tmp_path):
        """Test a path attachment is closed once the call returns"""
        path = tmp_path / "a.bin"
        path.write_bytes(b"data")
        opened = []
        real_open = open

        def tracking_open(*args, **kwargs):
            f = real_open(*args, **kwargs)
            opened.append(f)
            return f

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("builtins.open", tracking_open)
            Transport(session=session).send("POST", "https://x/y", attachment=Attachment("f", path, "a.bin"))

        assert opened and all(f.closed for f in opened)

    @responses.activate
    def test_network_errors_propagate(self):
        responses.add(responses.GET, "https://x/y", body=requests.ConnectionError("refused"))

        with pytest.raises(requests.ConnectionError):
            Transport().send("GET", "https://x/y")

    def test_close(self, session):
        Transport(session=session).close()
        session.close.assert_called_once()
