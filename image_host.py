import base64
import json
import time

import requests
from flask import current_app

from errors import UploadFailed


class ImageHost:
    """Uploads screenshots to a freeimage.host compatible API and returns the public URL.

    ``timeout`` is a total deadline for the call. requests only bounds the
    connect and each individual socket read, so the response is streamed and
    the body is abandoned once the deadline passes.
    """

    def __init__(self, api_url, api_key, timeout=10, session=None, clock=time.monotonic):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.clock = clock

    @classmethod
    def from_config(cls, config):
        return cls(config['IMAGE_HOST_URL'], config['IMAGE_HOST_API_KEY'], timeout=config['IMAGE_UPLOAD_TIMEOUT'])

    def upload(self, image_bytes):
        form = {
            'key': self.api_key,
            'action': 'upload',
            'source': base64.b64encode(image_bytes).decode('ascii'),
            'format': 'json',
        }
        current_app.logger.debug('Uploading image to image host')
        deadline = self.clock() + self.timeout
        try:
            response = self.session.post(self.api_url, data=form, timeout=self.timeout, stream=True)
            body = self._read_body(response, deadline)
        except requests.Timeout:
            current_app.logger.error(f"Image upload timed out after {self.timeout}s")
            raise UploadFailed('Image upload failed: request timed out')
        except requests.RequestException as e:
            current_app.logger.error(f"Error uploading image: {str(e)}")
            raise UploadFailed('Image upload failed: no response from server')

        try:
            payload = json.loads(body)
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.status_code != 200 or payload.get('status_code') != 200:
            reason = payload.get('status_txt') or response.reason or 'Unknown error'
            current_app.logger.error(f"Image host error: {response.status_code} - {reason}")
            raise UploadFailed(f'Image upload failed: {response.status_code} - {reason}')

        image_url = (payload.get('image') or {}).get('url')
        if not image_url:
            raise UploadFailed('Image upload failed: no image URL in response')
        return image_url

    def _read_body(self, response, deadline):
        chunks = []
        try:
            if self.clock() > deadline:
                raise requests.Timeout('image host answered after the upload deadline')
            for chunk in response.iter_content(chunk_size=8192):
                chunks.append(chunk)
                if self.clock() > deadline:
                    raise requests.Timeout('image host response exceeded the upload deadline')
        finally:
            response.close()
        return b''.join(chunks)
