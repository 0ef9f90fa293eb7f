import json
import logging
from collections.abc import Mapping
from typing import Any
from urllib import error, parse, request

logger = logging.getLogger(__name__)


class RecallApiError(Exception):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details if details is not None else message


class RecallApiClient:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout_seconds: float = 15.0,
        user_agent: str = "RecallMeetingBridge/1.0",
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent

    def create_bot(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        response_payload = self._request_json("POST", "/bot/", payload=payload)
        if not isinstance(response_payload, Mapping):
            raise RecallApiError("Recall API returned an unexpected bot payload.")
        return dict(response_payload)

    def get_bot(self, bot_id: str) -> dict[str, Any]:
        quoted_bot_id = parse.quote(bot_id, safe="")
        response_payload = self._request_json("GET", f"/bot/{quoted_bot_id}/")
        if not isinstance(response_payload, Mapping):
            raise RecallApiError("Recall API returned an unexpected bot payload.")
        return dict(response_payload)

    def download_transcript(self, download_url: str) -> Any:
        """Fetch a transcript artifact from a pre-signed URL.

        No headers are attached: extra headers invalidate the URL signature.
        """
        req = request.Request(download_url, method="GET")
        response_body = self._send(req, operation="transcript download")
        decoded_body = response_body.decode("utf-8", errors="replace")
        try:
            return json.loads(decoded_body)
        except json.JSONDecodeError:
            return decoded_body

    def _request_json(
        self,
        method: str,
        path: str,
        payload: Mapping[str, Any] | None = None,
    ) -> Any:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = request.Request(
            f"{self.api_url}{path}",
            data=data,
            headers=self._auth_headers(),
            method=method,
        )
        response_body = self._send(req, operation=f"{method} {path}")
        if not response_body:
            return {}
        try:
            return json.loads(response_body.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise RecallApiError("Recall API returned invalid JSON.") from exc

    def _auth_headers(self) -> dict[str, str]:
        if not self.api_key:
            raise RecallApiError("RECALL_API_KEY is not configured")
        return {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

    def _send(self, req: request.Request, operation: str) -> bytes:
        try:
            with request.urlopen(req, timeout=self.timeout_seconds) as response:
                return response.read()
        except error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="ignore")
            logger.warning(
                "Recall API request failed operation=%s status_code=%s",
                operation,
                exc.code,
            )
            raise RecallApiError(
                f"Recall API HTTP {exc.code}: {body or 'empty response body'}",
                status_code=exc.code,
                details=_decode_error_body(body),
            ) from exc
        except error.URLError as exc:
            raise RecallApiError(f"Recall API connection error: {exc.reason}") from exc
        except TimeoutError as exc:
            raise RecallApiError(f"Recall API timed out during {operation}.") from exc


def _decode_error_body(body: str) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return body
