"""
Per-job configuration: which sheet to read and who gets the messages.

Job configs live in a Notion database (one page per job) or, for local runs,
in a JSON file. Both stores are read-only from this side.
"""

import json
import logging
import re
from dataclasses import dataclass, field

import httpx

import config

log = logging.getLogger(__name__)

NOTION_BASE = "https://api.notion.com/v1"

KIND_OVERDUE_STOCK = "overdue-stock"
KIND_TAX_DEADLINE = "tax-deadline"
KIND_THRESHOLD = "threshold"

# Kinds implied by the well-known job names when the config leaves Kind blank
DEFAULT_KINDS = {
    "notify-overdue-stock-vehicles": KIND_OVERDUE_STOCK,
    "notify-vehicles-near-tax-deadline": KIND_TAX_DEADLINE,
}


class JobStoreError(RuntimeError):
    """The config store could not be queried."""


@dataclass
class JobConfig:
    job_name: str
    sheet_name: str
    recipient_ids: list[str] = field(default_factory=list)
    group_ids: list[str] = field(default_factory=list)
    is_active: bool = True
    kind: str = ""
    column_index: int | None = None
    threshold_value: float | None = None
    description: str = ""

    @property
    def resolved_kind(self) -> str:
        return self.kind or DEFAULT_KINDS.get(self.job_name, "")


def split_ids(text: str) -> list[str]:
    """Split a comma/newline/space separated ID list, dropping blanks."""
    return [part for part in re.split(r"[,\s]+", text or "") if part]


class _BaseStore:
    def find_job_config(self, job_name: str) -> JobConfig | None:
        raise NotImplementedError

    def list_job_names(self) -> list[str]:
        raise NotImplementedError

    def find_active_job_config(self, job_name: str) -> JobConfig | None:
        """Lookup for callers that only care about runnable jobs.

        JobRunner uses find_job_config so it can log "not found" and
        "inactive" as separate skip reasons.
        """
        job = self.find_job_config(job_name)
        if job is None or not job.is_active:
            return None
        return job


# ---------------------------------------------------------------------------
# Notion
# ---------------------------------------------------------------------------

def _plain_text(prop: dict) -> str:
    kind = prop.get("type")
    if kind in ("title", "rich_text"):
        return "".join(p.get("plain_text", "") for p in prop.get(kind, []))
    if kind == "select":
        return (prop.get("select") or {}).get("name", "")
    return ""


def _page_to_config(page: dict) -> JobConfig:
    props = page.get("properties", {})
    column = props.get(config.NOTION_COLUMN_PROPERTY, {}).get("number")
    threshold = props.get(config.NOTION_THRESHOLD_PROPERTY, {}).get("number")
    return JobConfig(
        job_name=_plain_text(props.get(config.NOTION_JOB_NAME_PROPERTY, {})).strip(),
        sheet_name=_plain_text(props.get(config.NOTION_SHEET_NAME_PROPERTY, {})).strip(),
        recipient_ids=split_ids(_plain_text(props.get(config.NOTION_RECIPIENTS_PROPERTY, {}))),
        group_ids=split_ids(_plain_text(props.get(config.NOTION_GROUPS_PROPERTY, {}))),
        is_active=bool(props.get(config.NOTION_ACTIVE_PROPERTY, {}).get("checkbox", False)),
        kind=_plain_text(props.get(config.NOTION_KIND_PROPERTY, {})).strip(),
        column_index=int(column) if column is not None else None,
        threshold_value=float(threshold) if threshold is not None else None,
        description=_plain_text(props.get(config.NOTION_DESCRIPTION_PROPERTY, {})),
    )


class NotionJobConfigStore(_BaseStore):
    def __init__(self, database_id: str = "", http: httpx.Client | None = None) -> None:
        self.database_id = database_id or config.JOB_CONFIG_DB_ID
        self.http = http or httpx.Client(
            base_url=NOTION_BASE,
            headers={
                "Authorization": f"Bearer {config.NOTION_API_KEY}",
                "Notion-Version": "2022-06-28",
                "Content-Type": "application/json",
            },
            timeout=30,
        )

    def _query(self, notion_filter: dict | None = None) -> list[dict]:
        results = []
        cursor = None

        while True:
            body: dict = {"page_size": 100}
            if notion_filter:
                body["filter"] = notion_filter
            if cursor:
                body["start_cursor"] = cursor

            try:
                resp = self.http.post(f"/databases/{self.database_id}/query", json=body)
            except httpx.HTTPError as e:
                raise JobStoreError(f"Notion query failed: {e}") from e
            if resp.status_code >= 400:
                log.error("Notion query failed %s: %s", resp.status_code, resp.text)
                raise JobStoreError(f"Notion query returned {resp.status_code}")

            data = resp.json()
            results.extend(data.get("results", []))
            if not data.get("has_more"):
                break
            cursor = data.get("next_cursor")

        return results

    def find_job_config(self, job_name: str) -> JobConfig | None:
        pages = self._query({
            "property": config.NOTION_JOB_NAME_PROPERTY,
            "title": {"equals": job_name},
        })
        if not pages:
            return None
        if len(pages) > 1:
            log.warning("%d config pages named '%s'; using the first", len(pages), job_name)
        job = _page_to_config(pages[0])
        log.info("Loaded config for %s (%d recipient(s))", job_name, len(job.recipient_ids))
        return job

    def list_job_names(self) -> list[str]:
        pages = self._query({
            "property": config.NOTION_ACTIVE_PROPERTY,
            "checkbox": {"equals": True},
        })
        return [job.job_name for job in map(_page_to_config, pages) if job.job_name]


# ---------------------------------------------------------------------------
# JSON file
# ---------------------------------------------------------------------------

class FileJobConfigStore(_BaseStore):
    """Job configs from a JSON list of objects with JobConfig's field names."""

    def __init__(self, path: str = "") -> None:
        self.path = path or config.JOB_CONFIG_PATH

    def _load(self) -> list[JobConfig]:
        try:
            with open(self.path) as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise JobStoreError(f"Could not read job configs from {self.path}: {e}") from e

        jobs = []
        for entry in raw:
            try:
                jobs.append(JobConfig(**entry))
            except TypeError as e:
                raise JobStoreError(f"Bad job config entry {entry!r}: {e}") from e
        return jobs

    def find_job_config(self, job_name: str) -> JobConfig | None:
        for job in self._load():
            if job.job_name == job_name:
                return job
        return None

    def list_job_names(self) -> list[str]:
        return [job.job_name for job in self._load() if job.is_active]


def build_job_store(source: str = "") -> NotionJobConfigStore | FileJobConfigStore:
    source = (source or config.JOB_CONFIG_SOURCE).lower()
    if source == "notion":
        return NotionJobConfigStore()
    if source == "file":
        return FileJobConfigStore()
    raise ValueError(f"Unknown job config source: {source!r}")
