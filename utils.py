from datetime import datetime, date, timedelta, timezone
import math
import os
import geoip2.database
from user_agents import parse
from typing import Optional, Tuple

import config

TIME_RANGES = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}

PERIODS = ("daily", "weekly", "monthly", "yearly")


def utc_now():
    return datetime.now(timezone.utc)


def to_datetime(value) -> Optional[datetime]:
    """Coerce a datetime or ISO-8601 string to an aware UTC datetime (naive values are taken as UTC)"""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return None
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    elif not isinstance(value, datetime):
        return None

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def time_range_start(time_range: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Start of a dashboard time range ('24h', '7d', '30d', 'all'); None means unbounded"""
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time range: {time_range}")
    span = TIME_RANGES[time_range]
    if span is None:
        return None
    now = to_datetime(now) if now is not None else utc_now()
    return now - span


def generate_period_key(day, period: str) -> str:
    """Period key for the window containing `day`.

    daily -> 2024-03-15, weekly -> 2024-W11 (ISO week), monthly -> 2024-03, yearly -> 2024
    """
    if isinstance(day, datetime):
        day = to_datetime(day).date()
    if period == "daily":
        return day.strftime("%Y-%m-%d")
    if period == "weekly":
        iso_year, iso_week, _ = day.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if period == "monthly":
        return day.strftime("%Y-%m")
    if period == "yearly":
        return day.strftime("%Y")
    raise ValueError(f"Unknown period: {period}")


def period_bounds(period_key: str, period: str) -> Tuple[datetime, datetime]:
    """[start, end) of the window a period key names, as aware UTC datetimes"""
    try:
        if period == "daily":
            start = datetime.strptime(period_key, "%Y-%m-%d")
            end = start + timedelta(days=1)
        elif period == "weekly":
            year, week = period_key.split("-W")
            first_day = date.fromisocalendar(int(year), int(week), 1)
            start = datetime(first_day.year, first_day.month, first_day.day)
            end = start + timedelta(days=7)
        elif period == "monthly":
            start = datetime.strptime(period_key, "%Y-%m")
            if start.month == 12:
                end = start.replace(year=start.year + 1, month=1)
            else:
                end = start.replace(month=start.month + 1)
        elif period == "yearly":
            start = datetime.strptime(period_key, "%Y")
            end = start.replace(year=start.year + 1)
        else:
            raise ValueError(f"Unknown period: {period}")
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid period key '{period_key}' for period '{period}'") from e

    return start.replace(tzinfo=timezone.utc), end.replace(tzinfo=timezone.utc)


def safe_div(numerator, denominator, default=0.0):
    """Division that never produces NaN/Infinity"""
    if not denominator:
        return default
    result = numerator / denominator
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def get_location_from_ip(ip_address: str) -> dict:
    """Get location data from IP address using GeoIP2"""
    try:
        geoip_path = config.GEOIP_DB_PATH
        if not ip_address or not os.path.exists(geoip_path):
            return {}

        with geoip2.database.Reader(geoip_path) as reader:
            response = reader.city(ip_address)
            return {
                "country": response.country.name,
                "state": response.subdivisions.most_specific.name if response.subdivisions else None,
                "city": response.city.name,
            }
    except Exception:
        return {}


def format_location(location: dict) -> Optional[str]:
    parts = [location.get("city"), location.get("country")]
    parts = [p for p in parts if p]
    return ", ".join(parts) if parts else None


def parse_user_agent(user_agent_string: Optional[str]) -> dict:
    """Parse user agent string to extract device, browser, and OS info"""
    ua = parse(user_agent_string or "")
    return {
        "device": "Mobile" if ua.is_mobile else "Tablet" if ua.is_tablet else "Desktop",
        "browser": f"{ua.browser.family} {ua.browser.version_string}".strip(),
        "os": f"{ua.os.family} {ua.os.version_string}".strip()
    }


def classify_traffic_source(referrer: Optional[str], utm_source: Optional[str] = None) -> dict:
    """Classify traffic source based on referrer and UTM parameters"""
    if utm_source:
        return {"type": "campaign", "name": utm_source}

    if not referrer or referrer.lower() == "direct":
        return {"type": "direct", "name": "Direct"}

    referrer_lower = referrer.lower()

    # Social media
    social_platforms = {
        "facebook.com": "Facebook",
        "instagram.com": "Instagram",
        "twitter.com": "Twitter",
        "linkedin.com": "LinkedIn",
        "pinterest.com": "Pinterest"
    }

    for domain, name in social_platforms.items():
        if domain in referrer_lower:
            return {"type": "social", "name": name}

    # Search engines
    search_engines = {
        "google.": "Google",
        "bing.com": "Bing",
        "yahoo.com": "Yahoo",
        "duckduckgo.com": "DuckDuckGo"
    }

    for domain, name in search_engines.items():
        if domain in referrer_lower:
            return {"type": "organic", "name": name}

    return {"type": "referral", "name": referrer}
