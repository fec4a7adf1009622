"""HTTP clients for the sale-ledger backend (sales, clients and products)."""
from typing import Any, Dict, List, Optional

import requests
from flask import current_app

from pos_draft.exceptions import SubmissionFailureError
from pos_draft.models.product import ProductSnapshot


class _BackendClient:
    """Shared auth header, timeout and error handling."""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.headers = {'Content-Type': 'application/json'}
        if token:
            self.headers['Authorization'] = f'Bearer {token}'

    @classmethod
    def from_config(cls, config):
        return cls(
            config['SALE_API_URL'],
            token=config.get('SALE_API_TOKEN'),
            timeout=config.get('SALE_API_TIMEOUT', 10),
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Send one request to the backend.

        Raises:
            SubmissionFailureError: on an error status or when the backend
                cannot be reached
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = requests.request(method, url, headers=self.headers, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.HTTPError as e:
            body = e.response.text if e.response is not None else ''
            current_app.logger.error(f"[SALE-API] {method} {path} failed: {e} {body}")
            raise SubmissionFailureError(
                f"Backend rejected {method} {path}", details=_error_details(e.response)
            ) from e
        except requests.RequestException as e:
            current_app.logger.error(f"[SALE-API] {method} {path} unreachable: {str(e)}")
            raise SubmissionFailureError("Sale backend is unreachable") from e


def _error_details(response) -> Any:
    if response is None:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class SaleBackendClient(_BackendClient):
    """Posts finalized sale payloads."""

    def submit(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        current_app.logger.info(f"[SALE-API] Submitting sale for store {payload.get('store')}")
        data = self._request('POST', '/sales/', json=payload)
        if not isinstance(data, dict):
            current_app.logger.error(f"[SALE-API] Unexpected sale response: {data!r}")
            raise SubmissionFailureError("Unexpected response from sale backend", details=data)
        current_app.logger.info(f"[SALE-API] Sale created: {data.get('id')}")
        return data


class ClientDirectoryClient(_BackendClient):
    """Client lookup and ad-hoc creation."""

    def search(self, name: str) -> List[Dict[str, Any]]:
        data = self._request('GET', '/clients/', params={'name': name})
        # Paginated responses wrap the list in 'results'
        if isinstance(data, dict):
            return data.get('results', [])
        return data

    def create(self, client_data: Dict[str, Any]) -> Dict[str, Any]:
        current_app.logger.info(f"[SALE-API] Creating client {client_data.get('name')}")
        return self._request('POST', '/clients/', json=client_data)


class ProductCatalogClient(_BackendClient):
    """Product search, returning snapshots the draft can hold."""

    def search(self, query: Optional[str] = None) -> List[ProductSnapshot]:
        params = {'product_name': query} if query else None
        data = self._request('GET', '/items/product/', params=params)
        if isinstance(data, dict):
            data = data.get('results', [])
        return [ProductSnapshot.from_dict(item) for item in data]
