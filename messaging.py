"""
Chat delivery: push a text message to one recipient or multicast it to many.

Two providers share the same surface:
  LineMessenger   LINE Messaging API over httpx (default)
  SlackMessenger  Slack Web API via slack_sdk
"""

import logging
import time
from datetime import datetime, timezone
from typing import Sequence

import httpx
from slack_sdk import WebClient as SlackClient
from slack_sdk.errors import SlackApiError

import config
from batching import chunked

log = logging.getLogger(__name__)

LINE_BASE = "https://api.line.me/v2/bot"


class DispatchFailure(RuntimeError):
    """A send call failed as a unit."""


def _startup_text(job_name: str | None) -> str:
    return (
        "✅ Vehicle notifier check\n\n"
        "\U0001f916 System is running properly\n"
        f"\U0001f4cb Job: {job_name or 'System Test'}\n"
        f"\U0001f552 Time: {datetime.now(timezone.utc).isoformat()}"
    )


# ---------------------------------------------------------------------------
# LINE
# ---------------------------------------------------------------------------

class LineMessenger:
    def __init__(
        self,
        access_token: str = "",
        default_recipient: str = "",
        multicast_limit: int = config.MULTICAST_LIMIT,
        http: httpx.Client | None = None,
    ) -> None:
        self.default_recipient = default_recipient or config.LINE_USER_ID
        self.multicast_limit = multicast_limit
        self.http = http or httpx.Client(
            base_url=LINE_BASE,
            headers={
                "Authorization": f"Bearer {access_token or config.LINE_CHANNEL_ACCESS_TOKEN}",
                "Content-Type": "application/json",
            },
            timeout=30,
        )

    def _post(self, path: str, body: dict) -> None:
        try:
            resp = self.http.post(path, json=body)
        except httpx.HTTPError as e:
            raise DispatchFailure(f"LINE request to {path} failed: {e}") from e
        if resp.status_code >= 400:
            log.error("LINE API error %s on %s: %s", resp.status_code, path, resp.text)
            raise DispatchFailure(f"LINE API returned {resp.status_code} for {path}")

    def send_to_one(self, recipient_id: str, text: str) -> None:
        self._post("/message/push", {
            "to": recipient_id,
            "messages": [{"type": "text", "text": text}],
        })
        log.info("LINE push sent to %s", recipient_id)

    def send_to_many(self, recipient_ids: Sequence[str], text: str) -> None:
        for chunk in chunked(list(recipient_ids), self.multicast_limit):
            self._post("/message/multicast", {
                "to": chunk,
                "messages": [{"type": "text", "text": text}],
            })
            log.info("LINE multicast sent to %d recipient(s)", len(chunk))

    def send_startup_message(self, job_name: str | None = None) -> None:
        self.send_to_one(self.default_recipient, _startup_text(job_name))

    def validate_connection(self) -> bool:
        try:
            resp = self.http.get("/info")
        except httpx.HTTPError:
            log.exception("LINE connection validation failed")
            return False
        if resp.status_code >= 400:
            log.error("LINE connection validation failed %s: %s", resp.status_code, resp.text)
            return False
        log.info("LINE connection validated (%s)", resp.json().get("displayName", "bot"))
        return True


# ---------------------------------------------------------------------------
# Slack
# ---------------------------------------------------------------------------

class SlackMessenger:
    def __init__(
        self,
        slack: SlackClient | None = None,
        default_channel: str = "",
        retries: int = 5,
    ) -> None:
        self.slack = slack or SlackClient(token=config.SLACK_BOT_TOKEN)
        self.default_channel = default_channel or config.SLACK_CHANNEL
        self.retries = retries

    def send_to_one(self, recipient_id: str, text: str) -> None:
        for attempt in range(self.retries):
            try:
                self.slack.chat_postMessage(channel=recipient_id, text=text)
                log.info("Slack message sent to %s", recipient_id)
                return
            except SlackApiError as e:
                if e.response["error"] == "ratelimited" and attempt < self.retries - 1:
                    wait = int(e.response.headers.get("Retry-After", 10))
                    log.warning("Rate limited by Slack, waiting %ds (attempt %d/%d)...", wait, attempt + 1, self.retries)
                    time.sleep(wait)
                else:
                    log.error("Slack API error: %s", e.response["error"])
                    raise DispatchFailure(f"Slack rejected message to {recipient_id}: {e.response['error']}") from e

    def send_to_many(self, recipient_ids: Sequence[str], text: str) -> None:
        for recipient_id in recipient_ids:
            self.send_to_one(recipient_id, text)

    def send_startup_message(self, job_name: str | None = None) -> None:
        self.send_to_one(self.default_channel, _startup_text(job_name))

    def validate_connection(self) -> bool:
        try:
            resp = self.slack.auth_test()
        except SlackApiError:
            log.exception("Slack connection validation failed")
            return False
        log.info("Slack connection validated (%s)", resp.get("user", "bot"))
        return True


def build_messenger(provider: str = "") -> LineMessenger | SlackMessenger:
    provider = (provider or config.CHAT_PROVIDER).lower()
    if provider == "slack":
        return SlackMessenger()
    if provider == "line":
        return LineMessenger()
    raise ValueError(f"Unknown chat provider: {provider!r}")
