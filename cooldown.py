"""
Per-row notification cooldown.

Remembers when each (job, row) was last notified and suppresses repeats
inside the cooldown window. State lives in memory for the life of the
process; pass a state path to carry it across runs in a JSON file (same
shape as the other *_state.json files: key -> ISO timestamp).
"""

import json
import logging
from datetime import datetime, timedelta

import config

log = logging.getLogger(__name__)


def cooldown_key(job_name: str, row_position: int) -> str:
    return f"{job_name}::{row_position}"


class CooldownTracker:
    def __init__(
        self,
        window: timedelta = timedelta(minutes=config.COOLDOWN_MINUTES),
        state_path: str | None = None,
    ) -> None:
        self.window = window
        self.state_path = state_path
        self.last_sent: dict[str, datetime] = {}
        if state_path:
            self.last_sent = load_state(state_path)

    def should_suppress(self, key: str, now: datetime) -> bool:
        last = self.last_sent.get(key)
        return last is not None and now - last < self.window

    def record_sent(self, key: str, now: datetime) -> None:
        last = self.last_sent.get(key)
        if last is None or now > last:
            self.last_sent[key] = now

    def save(self) -> None:
        """Write state to disk, keeping the later timestamp for every key.

        Entries already on disk that are newer than ours win, so a run that
        finishes late cannot roll back a notification recorded by another.
        """
        if not self.state_path:
            return
        merged = load_state(self.state_path)
        for key, sent_at in self.last_sent.items():
            if key not in merged or sent_at > merged[key]:
                merged[key] = sent_at
        self.last_sent = merged
        save_state(self.state_path, merged)
        log.info("Cooldown state saved to %s (%d key(s))", self.state_path, len(merged))


# ---------------------------------------------------------------------------
# State file helpers
# ---------------------------------------------------------------------------

def load_state(path: str) -> dict[str, datetime]:
    try:
        with open(path) as f:
            raw = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return {}

    state = {}
    for key, stamp in raw.items():
        try:
            state[key] = datetime.fromisoformat(stamp)
        except (TypeError, ValueError):
            log.warning("Ignoring bad cooldown timestamp for %s: %r", key, stamp)
    return state


def save_state(path: str, state: dict[str, datetime]) -> None:
    with open(path, "w") as f:
        json.dump({key: sent_at.isoformat() for key, sent_at in state.items()}, f, indent=2)
