"""HTTP client for peer-to-peer calls, with per-call timeout and optional retries."""
import time
import logging
import requests

logger = logging.getLogger("hwmonitor.http")


class APIError(Exception):
    """API request error with status code and response body."""
    def __init__(self, message, status_code=None, response_body=None, source=None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.source = source


class PeerUnreachable(APIError):
    """Connection refused/reset, DNS failure, or a non-success HTTP status."""


class PeerTimeout(APIError):
    """The peer did not answer within the per-call timeout."""


class HTTPClient:
    """HTTP client with bounded timeouts and optional retry on transient failures."""

    RETRYABLE_STATUS = {429, 500, 502, 503, 504}

    def __init__(self, timeout=3.0, max_retries=0, user_agent="hwmonitor/1.0"):
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def get(self, url, params=None):
        return self._request("GET", url, params=params)

    def post(self, url, json=None):
        return self._request("POST", url, json=json)

    def _request(self, method, url, params=None, json=None):
        last_error = None
        for attempt in range(self.max_retries + 1):
            try:
                start = time.time()
                resp = self.session.request(method, url, params=params, json=json, timeout=self.timeout)
                latency = int((time.time() - start) * 1000)
                logger.debug(f"{method} {url} → {resp.status_code} ({latency}ms)")

                if 200 <= resp.status_code < 300:
                    try:
                        return resp.json()
                    except ValueError:
                        return resp.text

                last_error = PeerUnreachable(
                    f"HTTP {resp.status_code} from {url}",
                    status_code=resp.status_code,
                    response_body=resp.text,
                    source=url,
                )
                if resp.status_code not in self.RETRYABLE_STATUS:
                    raise last_error

            except requests.exceptions.Timeout as e:
                last_error = PeerTimeout(f"Timed out after {self.timeout}s: {url}", source=url)
                logger.debug(f"Timeout for {url}: {e} (attempt {attempt + 1})")
            except requests.exceptions.RequestException as e:
                last_error = PeerUnreachable(f"Request to {url} failed: {e}", source=url)
                logger.debug(f"Request error for {url}: {e} (attempt {attempt + 1})")

            if attempt < self.max_retries:
                time.sleep(min(2 ** attempt * 0.5, 5))

        raise last_error or PeerUnreachable(f"Max retries exceeded for {url}", source=url)

    def close(self):
        self.session.close()
