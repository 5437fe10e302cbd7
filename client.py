"""
Client side of the capture flow.

``HistoryClient`` talks to the history API the way the browser extension
does, and ``CaptureDebouncer`` holds the small piece of state the extension
keeps to avoid capturing the same tab/URL twice in a row.
"""

import logging

import requests

logger = logging.getLogger(__name__)


class ApiClientError(Exception):
    def __init__(self, status, message):
        self.status = status
        self.message = message
        super().__init__(f"{status}: {message}")


class CaptureDebouncer:
    """Decides whether a tab event should trigger a capture."""

    def __init__(self):
        self.last_tab_id = None
        self.last_url = None
        self.busy = False

    def _accept(self, tab_id, url):
        self.last_tab_id = tab_id
        self.last_url = url
        self.busy = True
        return True

    def on_tab_activated(self, tab_id, url):
        if self.busy or not url:
            return False
        if tab_id == self.last_tab_id and url == self.last_url:
            logger.debug("Same tab as last active tab, skipping")
            return False
        return self._accept(tab_id, url)

    def on_tab_updated(self, tab_id, url, status, active=True):
        if status != 'complete' or self.busy or not active or not url:
            return False
        if url == self.last_url:
            logger.debug("Same URL as last active tab, skipping")
            return False
        return self._accept(tab_id, url)

    def done(self):
        self.busy = False


class HistoryClient:
    def __init__(self, base_url, token=None, timeout=10, session=None):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method, path, auth=True, **kwargs):
        headers = {}
        if auth:
            if not self.token:
                raise ApiClientError(401, 'Not authenticated')
            headers['Authorization'] = f'Bearer {self.token}'
        url = f'{self.base_url}{path}'
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiClientError(0, f'Network error: {e}')

        try:
            body = response.json()
        except ValueError:
            raise ApiClientError(response.status_code, response.text or 'Invalid response')

        if not response.ok or not body.get('success'):
            raise ApiClientError(body.get('status', response.status_code), body.get('message', 'Request failed'))
        return body

    def _authenticate(self, path, email, password):
        body = self._request('POST', path, auth=False, json={'email': email, 'password': password})
        self.token = body['data']['token']
        return body['data']['user']

    def signup(self, email, password):
        return self._authenticate('/api/auth/signup', email, password)

    def login(self, email, password):
        return self._authenticate('/api/auth/login', email, password)

    def me(self):
        return self._request('GET', '/api/auth/me')['data']

    def update_preferences(self, **preferences):
        return self._request('PUT', '/api/auth/preferences', json={'preferences': preferences})['data']

    def upload_screenshot(self, image_base64, url, title, favicon=None):
        """Returns the stored item, or None when capturing is disabled server side."""
        body = self._request('POST', '/api/history/screenshot', json={
            'imageBase64': image_base64,
            'url': url,
            'title': title,
            'favicon': favicon,
        })
        return body.get('data')

    def get_history(self, **options):
        params = {key: value for key, value in options.items() if value is not None}
        return self._request('GET', '/api/history', params=params)['data']

    def get_domains(self):
        return self._request('GET', '/api/history/domains')['data']

    def delete_item(self, item_id):
        return self._request('DELETE', f'/api/history/{item_id}')['message']

    def clear_history(self, domain=None, before=None):
        params = {}
        if domain:
            params['domain'] = domain
        if before:
            params['before'] = before.isoformat() if hasattr(before, 'isoformat') else before
        return self._request('DELETE', '/api/history', params=params)['data']['deletedCount']
