"""Input normalizer.

Turns the raw campaign form (multipart fields or JSON body) into a validated
:class:`ProvisioningRequest`.  Every missing and invalid field is collected
and reported in a single :class:`ValidationError`.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Literal

from provisioner.platforms.base import (
    ALLOWED_CALLS_TO_ACTION,
    DEFAULT_CALL_TO_ACTION,
    EFFECTIVE_OBJECTIVE,
    ExistingPostSource,
    GeoLocation,
    ImageSource,
    ProvisioningRequest,
    PublishedPhotoSource,
)
from provisioner.platforms.exceptions import ValidationError
from provisioner.settings import settings

logger = logging.getLogger(__name__)

SourceKind = Literal["image", "post", "published_photo"]

_DAYS_PER_WEEK = Decimal(7)
_MINOR_UNITS = Decimal(100)
# Budgets travel upstream as signed 64-bit integers
_MAX_DAILY_MINOR_UNITS = 2**63 - 1

_TEXT_FIELDS = (
    "adAccountId",
    "pageId",
    "campaignName",
    "postUrl",
    "imageUrl",
    "caption",
    "title",
    "description",
    "linkUrl",
    "objective",
)

# Canonical key -> accepted aliases, first match wins
_ALIASES: dict[str, tuple[str, ...]] = {
    "startDate": ("startDate", "startTime"),
    "endDate": ("endDate", "endTime"),
    "title": ("title", "adTitle"),
    "description": ("description", "adDescription"),
}


def _get(raw: Mapping[str, Any], key: str) -> Any:
    for alias in _ALIASES.get(key, (key,)):
        value = raw.get(alias)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            value = value.strip()
        if value not in (None, ""):
            return value
    return None


# ---------------------------------------------------------------------------
# Field converters
# ---------------------------------------------------------------------------


def daily_budget_minor_units(weekly_budget: Any) -> int:
    """Weekly budget in major units -> daily budget in minor units.

    ``round(weekly / 7 * 100)`` with halves rounded up.
    Raises ValueError for non-numeric, non-finite, negative or oversized input.
    """
    if isinstance(weekly_budget, bool):
        raise ValueError("budget must be a number")
    try:
        weekly = Decimal(str(weekly_budget).strip())
    except InvalidOperation as exc:
        raise ValueError("budget must be a number") from exc
    if not weekly.is_finite():
        raise ValueError("budget must be finite")
    if weekly < 0:
        raise ValueError("budget must not be negative")
    try:
        daily = int(
            (weekly / _DAYS_PER_WEEK * _MINOR_UNITS).quantize(
                Decimal(1), rounding=ROUND_HALF_UP
            )
        )
    except InvalidOperation as exc:
        raise ValueError("budget is too large") from exc
    if daily > _MAX_DAILY_MINOR_UNITS:
        raise ValueError("budget is too large")
    return daily


def _default_location() -> GeoLocation:
    return GeoLocation(
        latitude=settings.DEFAULT_LATITUDE,
        longitude=settings.DEFAULT_LONGITUDE,
        radius_km=settings.DEFAULT_RADIUS_KM,
    )


def parse_location(value: Any) -> GeoLocation:
    """Parse a location object (or its JSON string form).

    Absent or incomplete locations fall back to the configured default.
    Raises ValueError when values are present but unusable.
    """
    if value in (None, ""):
        logger.info("No location supplied, using default targeting")
        return _default_location()

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError("location is not valid JSON") from exc
    if not isinstance(value, Mapping):
        raise ValueError("location must be an object")

    parts = [value.get(k) for k in ("latitude", "longitude", "radius")]
    if any(p in (None, "") for p in parts):
        logger.warning("Incomplete location %r, using default targeting", dict(value))
        return _default_location()

    try:
        latitude, longitude, radius = (float(p) for p in parts)
    except (TypeError, ValueError) as exc:
        raise ValueError("location values must be numeric") from exc

    if not all(math.isfinite(v) for v in (latitude, longitude, radius)):
        raise ValueError("location values must be finite")
    if abs(latitude) > 90:
        raise ValueError("latitude out of range")
    if abs(longitude) > 180:
        raise ValueError("longitude out of range")
    if radius <= 0:
        raise ValueError("radius must be positive")

    return GeoLocation(latitude=latitude, longitude=longitude, radius_km=radius)


def normalize_call_to_action(value: Any) -> str:
    if isinstance(value, str) and value.strip() in ALLOWED_CALLS_TO_ACTION:
        return value.strip()
    if value not in (None, ""):
        logger.info("Unsupported call to action %r, using %s", value, DEFAULT_CALL_TO_ACTION)
    return DEFAULT_CALL_TO_ACTION


def parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise ValueError("not an ISO 8601 date") from exc


def strip_account_prefix(ad_account_id: str) -> str:
    return ad_account_id.removeprefix("act_")


# ---------------------------------------------------------------------------
# normalize
# ---------------------------------------------------------------------------


def _branch_fields(kind: SourceKind) -> tuple[str, ...]:
    if kind == "post":
        return ("postUrl",)
    if kind == "published_photo":
        return ("imageFile", "caption")
    return ()


def normalize(raw: Mapping[str, Any], *, kind: SourceKind | None = None) -> ProvisioningRequest:
    """Validate and normalise one raw campaign form.

    *kind* picks the creative branch; when omitted it is ``post`` if a
    ``postUrl`` is present and ``image`` otherwise.  The same raw input
    always produces an equal request.
    """
    if kind is None:
        kind = "post" if _get(raw, "postUrl") else "image"

    missing: list[str] = []
    invalid: dict[str, str] = {}

    required = ("adAccountId", "pageId", "campaignName", "weeklyBudget", "startDate")
    for key in required + _branch_fields(kind):
        if _get(raw, key) is None:
            missing.append(key)
    if kind == "image" and _get(raw, "imageFile") is None and _get(raw, "imageUrl") is None:
        missing.append("imageFile")

    for key in _TEXT_FIELDS:
        value = _get(raw, key)
        if value is not None and not isinstance(value, str):
            invalid[key] = "must be a string"

    daily_budget: int | None = None
    if _get(raw, "weeklyBudget") is not None:
        try:
            daily_budget = daily_budget_minor_units(_get(raw, "weeklyBudget"))
        except ValueError as exc:
            invalid["weeklyBudget"] = str(exc)

    start_time: datetime | None = None
    if _get(raw, "startDate") is not None:
        try:
            start_time = parse_datetime(_get(raw, "startDate"))
        except ValueError as exc:
            invalid["startDate"] = str(exc)

    end_time: datetime | None = None
    if _get(raw, "endDate") is not None:
        try:
            end_time = parse_datetime(_get(raw, "endDate"))
        except ValueError as exc:
            invalid["endDate"] = str(exc)
        else:
            if start_time is not None and _not_after(end_time, start_time):
                invalid["endDate"] = "must be after startDate"

    location: GeoLocation | None = None
    try:
        location = parse_location(raw.get("location"))
    except ValueError as exc:
        invalid["location"] = str(exc)

    if missing or invalid:
        logger.info("Rejected campaign form: missing=%s invalid=%s", missing, invalid)
        raise ValidationError(missing_fields=missing, invalid_fields=invalid)

    if kind == "post":
        source: Any = ExistingPostSource(post_url=_get(raw, "postUrl"))
    elif kind == "published_photo":
        source = PublishedPhotoSource(
            file_path=_get(raw, "imageFile"), caption=_get(raw, "caption")
        )
    else:
        source = ImageSource(
            file_path=_get(raw, "imageFile"), image_url=_get(raw, "imageUrl")
        )

    return ProvisioningRequest(
        ad_account_id=strip_account_prefix(str(_get(raw, "adAccountId"))),
        page_id=str(_get(raw, "pageId")),
        campaign_name=str(_get(raw, "campaignName")),
        weekly_budget=float(Decimal(str(_get(raw, "weeklyBudget")).strip())),
        daily_budget_minor_units=daily_budget,
        start_time=start_time,
        end_time=end_time,
        location=location,
        creative_source=source,
        ad_description=_get(raw, "description") or "",
        ad_title=_get(raw, "title"),
        link_url=_get(raw, "linkUrl"),
        call_to_action=normalize_call_to_action(raw.get("callToAction")),
        requested_objective=_get(raw, "objective"),
        effective_objective=EFFECTIVE_OBJECTIVE,
    )


def _not_after(end: datetime, start: datetime) -> bool:
    # Naive and aware values are compared on wall-clock time
    if (end.tzinfo is None) != (start.tzinfo is None):
        end, start = end.replace(tzinfo=None), start.replace(tzinfo=None)
    return end <= start
