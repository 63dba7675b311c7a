"""
Strapi Client for the Clothing Store backend
============================================
Thin REST client for the content CMS collections.
"""

from typing import Optional, Dict, Any
from django.conf import settings
import logging
import requests

logger = logging.getLogger(__name__)


class CMSClientError(Exception):
    """Raised when a CMS request fails or returns an error status."""
    pass


class StrapiClient:
    """
    Reads and writes Strapi collection entries.

    Every request carries the API token as a bearer header and uses the
    configured timeout (30 seconds by default).
    """

    def __init__(self, base_url: str = None, token: str = None, timeout: int = None, session=None):
        config = settings.CMS_SYNC_CONFIG
        self.base_url = (base_url or config.get('BASE_URL', '')).rstrip('/')
        self.timeout = timeout or config.get('TIMEOUT', 30)
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {token or config.get("API_TOKEN", "")}',
            'Content-Type': 'application/json',
        })

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f'{self.base_url}/{path.lstrip("/")}'
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            raise CMSClientError(f'{method} {url} failed: {self._error_message(e.response) or e}')
        except requests.RequestException as e:
            raise CMSClientError(f'CMS connection error on {method} {url}: {e}')

    @staticmethod
    def _error_message(response) -> Optional[str]:
        if response is None:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        error = body.get('error') if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error.get('message')
        return None

    def find_by_backend_id(self, collection: str, backend_id) -> Optional[Dict[str, Any]]:
        """Return the first entry whose ``backend_id`` matches, or None."""
        result = self._request(
            'GET',
            collection,
            params={'filters[backend_id][$eq]': str(backend_id)}
        )
        entries = result.get('data') or []
        return entries[0] if entries else None

    def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('POST', collection, json={'data': data}).get('data') or {}

    def update(self, collection: str, doc_id, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('PUT', f'{collection}/{doc_id}', json={'data': data}).get('data') or {}
