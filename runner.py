"""
Run one notification job end to end:

  job config -> sheet rows -> due rows -> cooldown filter -> messages -> send

Config and sheet failures abort the job (the exception propagates). A bad
row or a failed send is logged and the run moves on to the next one.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Callable, Protocol, Sequence

import config
from batching import batch, dispatch_paced
from cooldown import CooldownTracker, cooldown_key
from date_parsing import InvalidDate
from job_store import JobConfig
from jobs import JOB_KINDS, Candidate, JobKind
from messaging import DispatchFailure
from sheets import RawRow

log = logging.getLogger(__name__)


class RowSource(Protocol):
    def fetch_rows(self, sheet_name: str) -> list[RawRow]: ...


class Messenger(Protocol):
    def send_to_one(self, recipient_id: str, text: str) -> None: ...
    def send_to_many(self, recipient_ids: Sequence[str], text: str) -> None: ...


class JobConfigStore(Protocol):
    def find_job_config(self, job_name: str) -> JobConfig | None: ...
    def list_job_names(self) -> list[str]: ...


@dataclass
class OutboundMessage:
    text: str
    row_positions: list[int]
    cooldown_key: str = ""
    label: str = ""

    def describe(self) -> str:
        rows = ", ".join(str(r) for r in self.row_positions)
        return f"{self.label} rows {rows}" if self.label else f"row(s) {rows}"


@dataclass
class RunReport:
    job_name: str
    status: str = "completed"       # "completed" or "skipped"
    reason: str = ""
    rows_scanned: int = 0
    invalid_rows: int = 0
    due: int = 0
    suppressed: int = 0
    messages_sent: int = 0
    messages_failed: int = 0
    sent_rows: list[int] = field(default_factory=list)

    def summary(self) -> str:
        if self.status == "skipped":
            return f"{self.job_name}: skipped ({self.reason})"
        return (
            f"{self.job_name}: {self.rows_scanned} row(s) scanned, {self.due} due, "
            f"{self.suppressed} in cooldown, {self.invalid_rows} invalid, "
            f"{self.messages_sent} message(s) sent, {self.messages_failed} failed"
        )


def _is_blank_row(row: RawRow) -> bool:
    return not any(str(value).strip() for value in row.values if value is not None)


class JobRunner:
    def __init__(
        self,
        store: JobConfigStore,
        row_source: RowSource,
        messenger: Messenger,
        cooldown: CooldownTracker | None = None,
        clock: Callable[[], datetime] | None = None,
        tz: tzinfo | None = None,
        dispatch_delay: float = config.DISPATCH_DELAY_SECONDS,
        max_per_message: int = config.MAX_VEHICLES_PER_MESSAGE,
        sleep: Callable[[float], None] = time.sleep,
        dry_run: bool = False,
    ) -> None:
        self.store = store
        self.row_source = row_source
        self.messenger = messenger
        self.cooldown = cooldown if cooldown is not None else CooldownTracker()
        self.tz = tz or config.LOCAL_TZ
        self.clock = clock or (lambda: datetime.now(self.tz))
        self.dispatch_delay = dispatch_delay
        self.max_per_message = max_per_message
        self.sleep = sleep
        self.dry_run = dry_run

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_all(self, job_names: Sequence[str] | None = None) -> list[RunReport]:
        names = list(job_names) if job_names else self.store.list_job_names()
        if not names:
            log.warning("No jobs found to execute")
            return []

        reports = [self.run_job(name) for name in names]
        log.info("Check and notify completed for %d job(s)", len(reports))
        return reports

    def run_job(self, job_name: str) -> RunReport:
        now = self.clock().astimezone(self.tz)
        log.info("Executing job %s", job_name)

        job = self.store.find_job_config(job_name)
        if job is None:
            log.info("No config found for job %s; skipping", job_name)
            return RunReport(job_name, status="skipped", reason="config not found")
        if not job.is_active:
            log.info("Job %s is inactive; skipping", job_name)
            return RunReport(job_name, status="skipped", reason="inactive")

        kind = JOB_KINDS.get(job.resolved_kind)
        if kind is None:
            log.warning("Job %s has unknown kind %r; skipping", job_name, job.kind)
            return RunReport(job_name, status="skipped", reason="unknown kind")
        problem = kind.misconfiguration(job)
        if problem:
            log.warning("Job %s is misconfigured (%s); skipping", job_name, problem)
            return RunReport(job_name, status="skipped", reason=problem)
        if not job.recipient_ids and not job.group_ids:
            log.warning("Job %s has no recipients; skipping", job_name)
            return RunReport(job_name, status="skipped", reason="no recipients")

        rows = self.row_source.fetch_rows(job.sheet_name)
        report = RunReport(job_name)
        candidates = self._collect_due(job, kind, rows, now, report)
        log.info("%s: %d row(s) due out of %d scanned", job_name, report.due, report.rows_scanned)

        messages = self._build_messages(job, kind, candidates, now, report)
        if not messages:
            log.info("No notifications needed for %s", job_name)
            return report

        sent, failed = dispatch_paced(
            messages,
            lambda message: self._deliver(job, message),
            self.dispatch_delay,
            sleep=self.sleep,
            describe=OutboundMessage.describe,
        )
        report.messages_sent = len(sent)
        report.messages_failed = len(failed)
        for message in sent:
            report.sent_rows.extend(message.row_positions)
            if message.cooldown_key and not self.dry_run:
                self.cooldown.record_sent(message.cooldown_key, now)

        if not self.dry_run:
            self.cooldown.save()

        log.info("Done. %s", report.summary())
        return report

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _collect_due(
        self, job: JobConfig, kind: JobKind, rows: list[RawRow], now: datetime, report: RunReport,
    ) -> list[Candidate]:
        candidates = []
        for row in rows[kind.header_rows:]:
            if _is_blank_row(row):
                continue
            report.rows_scanned += 1
            try:
                candidate = kind.evaluate(job, row, now)
            except InvalidDate as e:
                report.invalid_rows += 1
                log.warning("%s: skipping row %d, missing or invalid date %r", job.job_name, row.position, e.value)
                continue
            if candidate is not None:
                candidates.append(candidate)
        report.due = len(candidates)
        return candidates

    def _build_messages(
        self, job: JobConfig, kind: JobKind, candidates: list[Candidate], now: datetime, report: RunReport,
    ) -> list[OutboundMessage]:
        if not kind.per_row:
            return [
                OutboundMessage(
                    text=kind.render_batch(job, b, now),
                    row_positions=[c.row_position for c in b.items],
                    label=f"message {b.label}",
                )
                for b in batch(candidates, self.max_per_message)
            ]

        messages = []
        for candidate in candidates:
            key = cooldown_key(job.job_name, candidate.row_position)
            if self.cooldown.should_suppress(key, now):
                report.suppressed += 1
                log.info("%s: row %d notified recently, skipping (cooldown)", job.job_name, candidate.row_position)
                continue
            messages.append(OutboundMessage(
                text=kind.render_one(job, candidate, now),
                row_positions=[candidate.row_position],
                cooldown_key=key,
            ))
        return messages

    def _deliver(self, job: JobConfig, message: OutboundMessage) -> None:
        """Send one message to every user and group of *job*.

        Raises DispatchFailure only when no recipient could be reached.
        """
        if self.dry_run:
            print(f"--- DRY RUN: {job.job_name} {message.describe()} ---")
            print(message.text)
            print()
            return

        targets: list[tuple[str, Callable[[], None]]] = []
        if len(job.recipient_ids) == 1:
            targets.append((job.recipient_ids[0], lambda: self.messenger.send_to_one(job.recipient_ids[0], message.text)))
        elif job.recipient_ids:
            targets.append((f"{len(job.recipient_ids)} recipients", lambda: self.messenger.send_to_many(job.recipient_ids, message.text)))
        for group_id in job.group_ids:
            targets.append((group_id, lambda group_id=group_id: self.messenger.send_to_one(group_id, message.text)))

        delivered = 0
        for target, send in targets:
            try:
                send()
            except DispatchFailure:
                log.exception("%s: failed to deliver %s to %s", job.job_name, message.describe(), target)
            else:
                delivered += 1

        if not delivered:
            raise DispatchFailure(f"{job.job_name}: {message.describe()} reached no recipients")
        log.info("%s: delivered %s to %d/%d target(s)", job.job_name, message.describe(), delivered, len(targets))
