import base64
import json
import time

import pytest
import requests

from errors import UploadFailed
from image_host import ImageHost


class FakeResponse:
    def __init__(self, status_code=200, payload=None, reason='OK', chunks=None):
        self.status_code = status_code
        self.reason = reason
        if chunks is None:
            chunks = [json.dumps(payload).encode() if payload is not None else b'<html>bad gateway</html>']
        self.chunks = chunks
        self.closed = False

    def iter_content(self, chunk_size=1):
        yield from self.chunks

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, data=None, timeout=None, stream=False):
        self.calls.append((url, data, timeout))
        if self.error:
            raise self.error
        return self.response


class FakeClock:
    """Advances ``step`` seconds every time it is read."""

    def __init__(self, step):
        self.step = step
        self.now = 0.0

    def __call__(self):
        now = self.now
        self.now += self.step
        return now


def host(session, clock=time.monotonic):
    return ImageHost('https://images.test/api/1/upload', 'k3y', timeout=10, session=session, clock=clock)


def test_upload_returns_public_url(ctx):
    session = FakeSession(FakeResponse(payload={'status_code': 200, 'image': {'url': 'https://images.test/a.png'}}))

    assert host(session).upload(b'png-bytes') == 'https://images.test/a.png'

    url, form, timeout = session.calls[0]
    assert url == 'https://images.test/api/1/upload'
    assert form['key'] == 'k3y'
    assert form['action'] == 'upload'
    assert base64.b64decode(form['source']) == b'png-bytes'
    assert timeout == 10


def test_timeout_is_an_upload_failure(ctx):
    session = FakeSession(error=requests.Timeout('slow'))

    with pytest.raises(UploadFailed, match='timed out'):
        host(session).upload(b'x')
    assert len(session.calls) == 1


def test_connection_error_is_an_upload_failure(ctx):
    with pytest.raises(UploadFailed, match='no response'):
        host(FakeSession(error=requests.ConnectionError('refused'))).upload(b'x')


@pytest.mark.parametrize('response', [
    FakeResponse(400, {'status_code': 400, 'status_txt': 'Bad key'}, reason='Bad Request'),
    FakeResponse(200, {'status_code': 500, 'status_txt': 'Broken'}),
    FakeResponse(502, None, reason='Bad Gateway'),
    FakeResponse(200, {'status_code': 200, 'image': {}}),
])
def test_error_responses_are_upload_failures(ctx, response):
    with pytest.raises(UploadFailed):
        host(FakeSession(response)).upload(b'x')


def test_trickling_response_hits_the_total_deadline(ctx):
    response = FakeResponse(chunks=[b'{"status_code": ', b'200, "image": ', b'{"url": "https://images.test/a.png"}}'])

    with pytest.raises(UploadFailed, match='timed out'):
        host(FakeSession(response), clock=FakeClock(step=4)).upload(b'x')
    assert response.closed


def test_body_within_deadline_is_accepted(ctx):
    response = FakeResponse(chunks=[b'{"status_code": 200, ', b'"image": {"url": "https://images.test/a.png"}}'])

    assert host(FakeSession(response), clock=FakeClock(step=1)).upload(b'x') == 'https://images.test/a.png'
    assert response.closed


def test_response_arriving_after_deadline_is_rejected(ctx):
    response = FakeResponse(payload={'status_code': 200, 'image': {'url': 'https://images.test/a.png'}})

    with pytest.raises(UploadFailed, match='timed out'):
        host(FakeSession(response), clock=FakeClock(step=11)).upload(b'x')
