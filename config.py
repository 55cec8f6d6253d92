import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

APP_ENV = os.environ.get("APP_ENV", "development")

# ---------------------------------------------------------------------------
# Google Sheet: vehicle inventory / tax renewal workbook
# ---------------------------------------------------------------------------
GOOGLE_SHEET_ID = os.environ.get("GOOGLE_SHEET_ID", "")
GOOGLE_CREDENTIALS_PATH = os.environ.get("GOOGLE_CREDENTIALS_PATH", "")
GOOGLE_CREDENTIALS_JSON = os.environ.get("GOOGLE_CREDENTIALS_JSON", "")  # raw service-account JSON

# ---------------------------------------------------------------------------
# Chat delivery
# ---------------------------------------------------------------------------
CHAT_PROVIDER = os.environ.get("CHAT_PROVIDER", "line").lower()  # "line" or "slack"

LINE_CHANNEL_ACCESS_TOKEN = os.environ.get("LINE_CHANNEL_ACCESS_TOKEN", "")
LINE_USER_ID = os.environ.get("LINE_USER_ID", "")  # default recipient for startup pings

SLACK_BOT_TOKEN = os.environ.get("SLACK_BOT_TOKEN", "")
SLACK_CHANNEL = os.environ.get("SLACK_CHANNEL", "")

# LINE multicast accepts at most 500 user IDs per call
MULTICAST_LIMIT = int(os.environ.get("MULTICAST_LIMIT", "500"))

# Seconds between consecutive messages of the same run
DISPATCH_DELAY_SECONDS = float(os.environ.get("DISPATCH_DELAY_SECONDS", "1.2"))

# ---------------------------------------------------------------------------
# Job configuration store
# ---------------------------------------------------------------------------
JOB_CONFIG_SOURCE = os.environ.get("JOB_CONFIG_SOURCE", "notion").lower()  # "notion" or "file"

NOTION_API_KEY = os.environ.get("NOTION_API_KEY", "")
JOB_CONFIG_DB_ID = os.environ.get("JOB_CONFIG_DB_ID", "")
JOB_CONFIG_PATH = os.environ.get(
    "JOB_CONFIG_PATH", os.path.join(os.path.dirname(__file__), "jobs.json")
)

# Notion property names (job config database)
NOTION_JOB_NAME_PROPERTY = "Job Name"          # type: title
NOTION_SHEET_NAME_PROPERTY = "Sheet Name"      # type: rich_text
NOTION_RECIPIENTS_PROPERTY = "Recipient IDs"   # type: rich_text, comma separated
NOTION_GROUPS_PROPERTY = "Group IDs"           # type: rich_text, comma separated
NOTION_ACTIVE_PROPERTY = "Active"              # type: checkbox
NOTION_KIND_PROPERTY = "Kind"                  # type: select
NOTION_COLUMN_PROPERTY = "Column Index"        # type: number
NOTION_THRESHOLD_PROPERTY = "Threshold"        # type: number
NOTION_DESCRIPTION_PROPERTY = "Description"    # type: rich_text

# ---------------------------------------------------------------------------
# Notification rules
# ---------------------------------------------------------------------------
LOCAL_TIMEZONE = os.environ.get("LOCAL_TIMEZONE", "Asia/Bangkok")
LOCAL_TZ = ZoneInfo(LOCAL_TIMEZONE)

STOCK_GRACE_MONTHS = int(os.environ.get("STOCK_GRACE_MONTHS", "2"))
TAX_DEADLINE_DAYS = int(os.environ.get("TAX_DEADLINE_DAYS", "60"))
MAX_VEHICLES_PER_MESSAGE = int(os.environ.get("MAX_VEHICLES_PER_MESSAGE", "30"))

# ---------------------------------------------------------------------------
# Dedup
# ---------------------------------------------------------------------------
COOLDOWN_MINUTES = int(os.environ.get("COOLDOWN_MINUTES", "60"))
COOLDOWN_STATE_PATH = os.environ.get("COOLDOWN_STATE_PATH", "")  # empty = in-memory only

# ---------------------------------------------------------------------------
# HTTP trigger
# ---------------------------------------------------------------------------
API_SECRET = os.environ.get("API_SECRET", "")


def validate_config() -> None:
    """Raise ValueError naming every required variable that is unset."""
    required = ["GOOGLE_SHEET_ID"]
    if not (GOOGLE_CREDENTIALS_PATH or GOOGLE_CREDENTIALS_JSON):
        required.append("GOOGLE_CREDENTIALS_PATH")

    if CHAT_PROVIDER == "slack":
        required.append("SLACK_BOT_TOKEN")
    else:
        required.extend(["LINE_CHANNEL_ACCESS_TOKEN", "LINE_USER_ID"])

    if JOB_CONFIG_SOURCE == "notion":
        required.extend(["NOTION_API_KEY", "JOB_CONFIG_DB_ID"])

    missing = [name for name in required if not globals().get(name)]
    if missing:
        raise ValueError(f"Missing required environment variables: {', '.join(missing)}")
