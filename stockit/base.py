"""
Stockit — HTTP Client

Thin synchronous client for the Stockit inventory API. Every call has a
bounded timeout. Transport failures, timeouts and non-2xx answers raise
ExternalSyncError carrying field-keyed errors; callers that must not
fail turn them into {'errors': {...}} via StockitClient.safe_call.

@file stockit/base.py
"""

import logging

import requests
from django.conf import settings

from core.exceptions import ExternalSyncError, normalize_errors

logger = logging.getLogger('stockroom')


class StockitClient:

    def __init__(self, base_url: str | None = None, api_token: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.STOCKIT_BASE_URL).rstrip('/')
        self.api_token = api_token if api_token is not None else settings.STOCKIT_API_TOKEN
        self.timeout = timeout or settings.STOCKIT_TIMEOUT_SECONDS
        self.session = requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'Authorization': f'Token token={self.api_token}',
        })

    def url_for(self, path: str) -> str:
        return f'{self.base_url}/{path.lstrip("/")}'

    def request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = self.url_for(path)
        try:
            resp = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.Timeout:
            logger.warning('Stockit %s %s timed out after %ss', method, url, self.timeout)
            raise ExternalSyncError(detail={'connection': [f'Stockit timed out after {self.timeout}s.']})
        except requests.RequestException as e:
            logger.warning('Stockit %s %s failed: %s', method, url, e)
            raise ExternalSyncError(detail={'connection': [f'Stockit unreachable: {e}']})

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}

        if resp.status_code >= 400 or (isinstance(body, dict) and body.get('errors')):
            errors = body.get('errors') if isinstance(body, dict) else None
            errors = normalize_errors(errors or f'Stockit responded {resp.status_code}.')
            logger.warning('Stockit %s %s -> %s %s', method, url, resp.status_code, errors)
            raise ExternalSyncError(detail=errors)

        logger.debug('Stockit %s %s -> %s', method, url, resp.status_code)
        return body if isinstance(body, dict) else {}

    def post(self, path: str, payload: dict) -> dict:
        return self.request('POST', path, payload)

    def put(self, path: str, payload: dict) -> dict:
        return self.request('PUT', path, payload)

    @staticmethod
    def safe_call(fn, *args, **kwargs) -> dict:
        """Run a sync call, returning {'errors': {...}} instead of raising."""
        try:
            return fn(*args, **kwargs) or {}
        except ExternalSyncError as e:
            return {'errors': normalize_errors(e.detail)}
