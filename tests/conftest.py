"""
Shared test fixtures

- fixed clock (19 Oct 2026, 09:00 Asia/Bangkok)
- in-memory fakes for the job config store, the sheet and the messenger
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from job_store import JobConfig
from messaging import DispatchFailure
from sheets import RawRow, SourceFetchFailure

BKK = ZoneInfo("Asia/Bangkok")
NOW = datetime(2026, 10, 19, 9, 0, tzinfo=BKK)


class FakeStore:
    def __init__(self, *configs: JobConfig, error: Exception | None = None) -> None:
        self.configs = {c.job_name: c for c in configs}
        self.error = error
        self.lookups: list[str] = []

    def find_job_config(self, job_name):
        self.lookups.append(job_name)
        if self.error:
            raise self.error
        return self.configs.get(job_name)

    def list_job_names(self):
        return [name for name, c in self.configs.items() if c.is_active]


class FakeRowSource:
    """Sheets keyed by name; each sheet is a list of lists of cell values."""

    def __init__(self, sheets: dict | None = None, error: Exception | None = None) -> None:
        self.sheets = sheets or {}
        self.error = error
        self.fetched: list[str] = []

    def fetch_rows(self, sheet_name):
        self.fetched.append(sheet_name)
        if self.error:
            raise self.error
        if sheet_name not in self.sheets:
            raise SourceFetchFailure(f"No worksheet named '{sheet_name}'")
        return [
            RawRow(position=i, values=tuple(values))
            for i, values in enumerate(self.sheets[sheet_name], start=1)
        ]


class FakeMessenger:
    """Records every call. *fail_when(recipient, text)* makes a call raise."""

    def __init__(self, fail_when=None) -> None:
        self.calls: list[tuple] = []
        self.fail_when = fail_when or (lambda recipient, text: False)

    def send_to_one(self, recipient_id, text):
        if self.fail_when(recipient_id, text):
            raise DispatchFailure(f"refused {recipient_id}")
        self.calls.append(("one", recipient_id, text))

    def send_to_many(self, recipient_ids, text):
        if any(self.fail_when(r, text) for r in recipient_ids):
            raise DispatchFailure("multicast refused")
        self.calls.append(("many", tuple(recipient_ids), text))

    @property
    def texts(self) -> list[str]:
        return [call[2] for call in self.calls]


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def messenger():
    return FakeMessenger()


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleep():
    return RecordingSleep()


def stock_row(stock_date: str, plate: str = "1AB 1234", make: str = "Toyota",
              model: str = "Camry", year: str = "2019", campaign: str = "-",
              price: str = "450,000") -> list[str]:
    row = [""] * 19
    row[0] = "x"
    row[5] = stock_date
    row[8] = plate
    row[11] = make
    row[12] = model
    row[14] = year
    row[17] = campaign
    row[18] = price
    return row


def tax_row(expiry: str, old_plate: str = "OLD 1", new_plate: str = "NEW 1",
            model: str = "Civic") -> list[str]:
    row = [""] * 9
    row[0] = "x"
    row[3] = old_plate
    row[4] = new_plate
    row[5] = model
    row[8] = expiry
    return row

