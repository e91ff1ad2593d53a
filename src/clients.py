"""
REST client for the Kubernetes API (Unleash custom resources).
"""

import logging
import time
from typing import Dict, List, Optional

import google.auth
import requests
from google.auth.transport.requests import AuthorizedSession

from errors import KubernetesApiError

logger = logging.getLogger(__name__)

UNLEASH_API_GROUP = "unleash.nais.io"
UNLEASH_API_VERSION = "v1"


class KubernetesRestClient:
    """REST client for Unleash and ReleaseChannel custom resources on GKE."""

    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        api_server: str,
        namespace: str,
        ca_cert_path: Optional[str] = None,
        timeout_s: int = 30,
        max_retries: int = 3,
        base_delay: float = 1.0,
    ):
        """
        Initialize the Kubernetes REST client.

        Args:
            api_server: Kubernetes API server URL
            namespace: Namespace holding the Unleash resources
            ca_cert_path: CA bundle for the API server certificate
            timeout_s: Request timeout in seconds
            max_retries: Maximum number of retries for transient errors
            base_delay: Base delay for exponential backoff
        """
        self.api_server = api_server.rstrip("/")
        self.namespace = namespace
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.base_delay = base_delay

        creds, _ = google.auth.default(
            scopes=["https://www.googleapis.com/auth/cloud-platform"]
        )
        self.session = AuthorizedSession(creds)
        if ca_cert_path:
            self.session.verify = ca_cert_path

    def _url(self, plural: str, name: Optional[str] = None) -> str:
        """Construct the URL of a namespaced custom resource (collection)."""
        path = (
            f"apis/{UNLEASH_API_GROUP}/{UNLEASH_API_VERSION}"
            f"/namespaces/{self.namespace}/{plural}"
        )
        if name:
            path = f"{path}/{name}"
        return f"{self.api_server}/{path}"

    def _request_with_retry(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Execute HTTP request with exponential backoff retry for transient errors.

        Args:
            method: HTTP method (GET, PUT)
            url: Request URL
            **kwargs: Additional request parameters

        Returns:
            The final response (which may still be an error status)

        Raises:
            KubernetesApiError: If max retries exceeded
        """
        last_error = None

        for attempt in range(self.max_retries + 1):
            try:
                resp = self.session.request(
                    method.upper(), url, timeout=self.timeout_s, **kwargs
                )
            except requests.RequestException as e:
                delay = self._calculate_delay(attempt)
                logger.warning(
                    f"Request error: {e}, attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                )
                last_error = str(e)
                if attempt < self.max_retries:
                    time.sleep(delay)
                continue

            if resp.status_code in self.RETRYABLE_STATUS_CODES:
                delay = self._calculate_delay(attempt, resp)
                error_info = self._error_message(resp)
                logger.warning(
                    f"Retryable error {resp.status_code} ({error_info}), attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                )
                last_error = f"HTTP {resp.status_code}: {error_info}"
                if attempt < self.max_retries:
                    time.sleep(delay)
                continue

            return resp

        raise KubernetesApiError(f"Max retries exceeded. Last error: {last_error}")

    def _calculate_delay(self, attempt: int, resp=None) -> float:
        """
        Calculate delay with exponential backoff and jitter.

        Args:
            attempt: Current attempt number
            resp: Optional response object (to check Retry-After header)

        Returns:
            Delay in seconds
        """
        if resp is not None and "Retry-After" in resp.headers:
            try:
                return float(resp.headers["Retry-After"])
            except ValueError:
                pass

        delay = self.base_delay * (2**attempt)
        jitter = delay * 0.2 * (0.5 - time.time() % 1)
        return min(delay + jitter, 60.0)

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        """Extract the Status message from an error response."""
        try:
            return str(resp.json().get("message", "")) or resp.text[:200]
        except ValueError:
            return resp.text[:200]

    def _check(self, resp: requests.Response, action: str) -> Dict:
        if resp.status_code not in (200, 201):
            raise KubernetesApiError(
                f"{action} failed ({resp.status_code}): {self._error_message(resp)}",
                status_code=resp.status_code,
            )
        return resp.json()

    def list_resources(self, plural: str) -> List[Dict]:
        """
        List all custom resources of a kind in the namespace.

        Follows ``metadata.continue`` tokens until the list is exhausted.
        """
        url = self._url(plural)
        items: List[Dict] = []
        continue_token: Optional[str] = None

        while True:
            params = {}
            if continue_token:
                params["continue"] = continue_token

            resp = self._request_with_retry("GET", url, params=params)
            data = self._check(resp, f"List {plural}")
            items.extend(data.get("items", []))

            continue_token = (data.get("metadata") or {}).get("continue")
            if not continue_token:
                break

        return items

    def get_resource(self, plural: str, name: str) -> Dict:
        """
        Get a single custom resource.

        Raises:
            KubernetesApiError: If the API call fails (status_code 404 when missing)
        """
        resp = self._request_with_retry("GET", self._url(plural, name))
        return self._check(resp, f"Get {plural}/{name}")

    def replace_resource(self, plural: str, name: str, body: Dict) -> Dict:
        """
        Replace a custom resource.

        The body must carry the ``metadata.resourceVersion`` it was read with;
        a concurrent modification is rejected by the API server with 409.
        """
        resp = self._request_with_retry("PUT", self._url(plural, name), json=body)
        return self._check(resp, f"Replace {plural}/{name}")
