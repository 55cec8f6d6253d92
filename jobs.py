"""
Job kinds: where each job finds its data in the sheet, which rule decides a
row is due, and how the resulting message reads.

  overdue-stock  one message per vehicle on its monthly stock anniversary
  tax-deadline   one consolidated list of vehicles whose tax expires soon
  threshold      one message per row whose value dropped below the threshold
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime

import config
from batching import NotificationBatch
from date_parsing import InvalidDate, format_date, normalize_date
from eligibility import (
    approx_days_in_stock,
    days_until,
    is_anniversary_due,
    is_below_threshold,
    is_deadline_due,
    months_elapsed,
    parse_number,
)
from job_store import KIND_OVERDUE_STOCK, KIND_TAX_DEADLINE, KIND_THRESHOLD, JobConfig
from sheets import RawRow


@dataclass
class Candidate:
    row_position: int
    parsed_date: date | None
    metric: float            # months elapsed, days remaining or the cell value
    fields: dict[str, str] = field(default_factory=dict)


def clean_text(value: object, separator: str = " ") -> str:
    """Flatten a multi-line cell into one line; blank cells become "N/A"."""
    text = "" if value is None else str(value)
    if not text.strip():
        return "N/A"
    text = re.sub(r"\r\n|\r|\n", separator, text)
    return re.sub(r"\s+", " ", text).strip()


def _extract(row: RawRow, columns: dict[str, int], separator: str = " ") -> dict[str, str]:
    return {name: clean_text(row.cell(idx), separator) for name, idx in columns.items()}


def _read_date(row: RawRow, column: int, now: datetime) -> date:
    value = row.cell(column)
    if isinstance(value, str) and not value.strip():
        raise InvalidDate(value)
    return normalize_date(value, now=now)


class JobKind:
    kind = ""
    header_rows = 1
    per_row = True

    def misconfiguration(self, job: JobConfig) -> str:
        """Describe what is missing from *job* for this kind, or "" if usable."""
        return ""

    def evaluate(self, job: JobConfig, row: RawRow, now: datetime) -> Candidate | None:
        raise NotImplementedError

    def render_one(self, job: JobConfig, candidate: Candidate, now: datetime) -> str:
        raise NotImplementedError

    def render_batch(self, job: JobConfig, batch: NotificationBatch, now: datetime) -> str:
        raise NotImplementedError


class OverdueStockJob(JobKind):
    kind = KIND_OVERDUE_STOCK

    stock_date_column = 5
    columns = {
        "license_plate": 8,
        "make": 11,
        "model": 12,
        "year": 14,
        "campaign": 17,
        "price": 18,
    }

    def evaluate(self, job, row, now):
        stock_date = _read_date(row, self.stock_date_column, now)
        today = now.date()
        if not is_anniversary_due(stock_date, today):
            return None
        return Candidate(
            row_position=row.position,
            parsed_date=stock_date,
            metric=months_elapsed(stock_date, today),
            fields=_extract(row, self.columns),
        )

    def render_one(self, job, candidate, now):
        f = candidate.fields
        days = approx_days_in_stock(int(candidate.metric))
        return (
            f"\U0001f697 Overdue stock: in stock for about {days} days\n"
            f"{f['make']} {f['model']} {f['year']}\n"
            f"License plate: {f['license_plate']}\n"
            f"Price: {f['price']}\n"
            f"Campaign: {f['campaign']}\n"
            f"In stock since: {format_date(candidate.parsed_date)}"
        )


class TaxDeadlineJob(JobKind):
    kind = KIND_TAX_DEADLINE
    per_row = False

    expiry_date_column = 8
    columns = {
        "old_license_plate": 3,
        "new_license_plate": 4,
        "model": 5,
    }

    def evaluate(self, job, row, now):
        expiry = _read_date(row, self.expiry_date_column, now)
        today = now.date()
        if not is_deadline_due(expiry, today):
            return None
        return Candidate(
            row_position=row.position,
            parsed_date=expiry,
            metric=days_until(expiry, today),
            fields=_extract(row, self.columns, separator=" | "),
        )

    def render_batch(self, job, batch, now):
        header = f"\U0001f9fe Vehicles due for tax renewal within {config.TAX_DEADLINE_DAYS} days"
        if batch.is_split:
            header += f" (message {batch.label})"

        lines = [header]
        for number, candidate in enumerate(batch.items, start=batch.offset + 1):
            f = candidate.fields
            days = int(candidate.metric)
            when = f"in {days} days" if days >= 0 else f"expired {-days} days ago"
            lines.extend([
                "",
                f"Vehicle #{number}",
                f"Old plate: {f['old_license_plate']}",
                f"New plate: {f['new_license_plate']}",
                f"Model: {f['model']}",
                f"Expires: {format_date(candidate.parsed_date)} ({when})",
            ])
        return "\n".join(lines)


class ThresholdJob(JobKind):
    kind = KIND_THRESHOLD
    header_rows = 0

    def misconfiguration(self, job):
        if job.column_index is None or job.threshold_value is None:
            return "threshold jobs need a column index and a threshold value"
        return ""

    def evaluate(self, job, row, now):
        value = parse_number(row.cell(job.column_index))
        if value is None or not is_below_threshold(value, job.threshold_value):
            return None
        return Candidate(row_position=row.position, parsed_date=None, metric=value)

    def render_one(self, job, candidate, now):
        return (
            "\U0001f6a8 Alert: Low Value Detected!\n\n"
            f"\U0001f4cb Job: {job.job_name}\n"
            f"\U0001f4ca Value: {candidate.metric:g}\n"
            f"\U0001f4cd Row: {candidate.row_position} | Column: {job.column_index}\n"
            f"⚠️ Threshold: < {job.threshold_value:g}\n"
            f"\U0001f550 Time: {now.isoformat()}\n\n"
            "Please check the spreadsheet for details."
        )


JOB_KINDS: dict[str, JobKind] = {
    job_kind.kind: job_kind
    for job_kind in (OverdueStockJob(), TaxDeadlineJob(), ThresholdJob())
}
