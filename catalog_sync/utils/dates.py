"""Datetime helpers."""

from __future__ import annotations

from datetime import datetime

import pendulum

from catalog_sync.errors import InvalidSyncRequest


def now_utc() -> pendulum.DateTime:
    return pendulum.now("UTC")


def hours_ago(hours: float) -> pendulum.DateTime:
    return now_utc().subtract(hours=hours)


def parse_watermark(value: str | datetime) -> pendulum.DateTime:
    """Parse a partial-sync watermark; naive values are taken as UTC."""
    if isinstance(value, datetime):
        moment = pendulum.instance(value, tz="UTC")
    else:
        try:
            moment = pendulum.parse(value, tz="UTC")
        except (ValueError, TypeError) as exc:
            raise InvalidSyncRequest(f"Invalid watermark: {value!r}") from exc
        if not isinstance(moment, pendulum.DateTime):
            raise InvalidSyncRequest(f"Watermark must be a timestamp, got {value!r}")
    return moment.in_timezone("UTC")


def format_watermark(value: pendulum.DateTime) -> str:
    return value.in_timezone("UTC").strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_remote_timestamp(value: str | None) -> datetime | None:
    """Convert an ISO-8601 API timestamp into a naive UTC datetime for storage."""
    if not value:
        return None
    return pendulum.parse(value).in_timezone("UTC").naive()
