import json
import logging
from urllib import error, request

from app.schemas.meeting import BotStatusNotification

logger = logging.getLogger(__name__)


class BotStatusNotificationError(Exception):
    pass


class BotStatusNotifier:
    """Forwards bot join/leave transitions to the n8n status workflow.

    Delivery is best effort: one attempt, no retry.
    """

    def __init__(
        self,
        webhook_url: str,
        api_key: str = "",
        timeout_seconds: float = 10.0,
    ) -> None:
        self.webhook_url = webhook_url.strip()
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def notify(
        self,
        *,
        meeting_id: str,
        status: BotStatusNotification,
        timestamp: str,
    ) -> None:
        if not self.enabled:
            raise BotStatusNotificationError("Bot status webhook URL is not configured.")

        body = {"meetingId": meeting_id, "status": status.value, "timestamp": timestamp}
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key

        req = request.Request(
            self.webhook_url,
            data=json.dumps(body).encode("utf-8"),
            headers=headers,
            method="POST",
        )
        try:
            with request.urlopen(req, timeout=self.timeout_seconds) as response:
                response.read()
        except error.HTTPError as exc:
            response_body = exc.read().decode("utf-8", errors="ignore")
            raise BotStatusNotificationError(
                f"Bot status webhook HTTP {exc.code}: {response_body or 'empty response body'}"
            ) from exc
        except error.URLError as exc:
            raise BotStatusNotificationError(f"Bot status webhook connection error: {exc.reason}") from exc
        except TimeoutError as exc:
            raise BotStatusNotificationError("Bot status webhook timed out.") from exc

        logger.info(
            "Bot status forwarded meeting_id=%s status=%s timestamp=%s",
            meeting_id,
            status.value,
            timestamp,
        )
