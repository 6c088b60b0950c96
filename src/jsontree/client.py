# client.py
# httpx client for the /api/files routes

import logging
import time

import httpx

from .errors import ApiError


logger = logging.getLogger(__name__)

READ_RETRIES = 3
RETRY_DELAY = 1.0


class FileApiClient:
    """Talks to a running jsontree server.

    read_file retries transport failures and 5xx answers with a linear
    backoff (1 s, 2 s, 3 s); every other call fails on the first error.
    There is no timeout.
    """

    def __init__(self, base_url="http://127.0.0.1:3001", transport=None, sleep=time.sleep):
        self.base_url = base_url.rstrip("/")
        self.sleep = sleep
        self._client = httpx.Client(base_url=self.base_url, transport=transport, timeout=None)

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ----------------------------
    # plumbing
    # ----------------------------

    def _unwrap(self, response):
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            message = None
            if isinstance(body, dict):
                message = body.get("message") or body.get("error")
            raise ApiError(message or f"HTTP {response.status_code}", response.status_code)
        if not isinstance(body, dict) or not body.get("success"):
            message = body.get("message") if isinstance(body, dict) else "Malformed response"
            raise ApiError(message or "Request failed", response.status_code)
        return body

    def _request(self, method, url, **kwargs):
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise ApiError(f"Network error: {e}") from e
        return self._unwrap(response)

    # ----------------------------
    # files
    # ----------------------------

    def list_files(self):
        return self._request("GET", "/api/files")["data"]

    def read_file(self, filename):
        url = f"/api/files/{filename}"
        attempt = 0
        while True:
            try:
                return self._request("GET", url)["data"]
            except ApiError as e:
                retryable = e.status_code is None or e.status_code >= 500
                if not retryable or attempt >= READ_RETRIES:
                    raise
                attempt += 1
                delay = RETRY_DELAY * attempt
                logger.warning("reading %s failed (%s), retry %d in %.0fs",
                               filename, e.message, attempt, delay)
                self.sleep(delay)

    def save_file(self, filename, content, preserve_format=False):
        body = {"content": content, "preserveFormat": preserve_format}
        return self._request("POST", f"/api/files/{filename}", json=body).get("message")

    def create_file(self, filename, content=None):
        body = {} if content is None else {"content": content}
        return self._request("PUT", f"/api/files/{filename}", json=body).get("message")

    def delete_file(self, filename):
        return self._request("DELETE", f"/api/files/{filename}").get("message")

    def import_file(self, filename, data):
        files = {"file": (filename, data, "application/json")}
        return self._request("POST", "/api/files/import", files=files)["data"]

    def export_file(self, content, filename="export.json", fmt="pretty"):
        body = {"content": content, "filename": filename, "format": fmt}
        try:
            response = self._client.post("/api/files/export", json=body)
        except httpx.TransportError as e:
            raise ApiError(f"Network error: {e}") from e
        if response.is_error:
            self._unwrap(response)
        return response.text

    def validate(self, content):
        """(True, None) when content parses, else (False, parser message)."""
        try:
            self._request("POST", "/api/files/validate", json={"content": content})
        except ApiError as e:
            if e.status_code != 400:
                raise
            return False, e.message
        return True, None

    def health(self):
        try:
            response = self._client.get("/health")
        except httpx.TransportError as e:
            raise ApiError(f"Network error: {e}") from e
        if response.is_error:
            raise ApiError(f"HTTP {response.status_code}", response.status_code)
        return response.json()
