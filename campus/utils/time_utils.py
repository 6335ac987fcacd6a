from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column in the schema is stored naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_completion_date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")
