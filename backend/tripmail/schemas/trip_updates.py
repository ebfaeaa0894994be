"""
Typed payloads for queued trip updates.

Each update kind has its own payload model; TripUpdate is the closed union of them,
discriminated by `kind`. Stored rows keep the kind in email_queue.update_type and the
payload (plus trip display fields) as JSON in email_queue.update_data.

Fields are optional on purpose at this layer: a stored row must always be renderable,
so missing values are filled with placeholders by the renderer instead of failing the batch.
"""
from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

UNKNOWN_DESTINATION = "Unknown Destination"


class UpdateKind(str, Enum):
    ACTIVITY = "activity"
    TRANSPORTATION = "transportation"
    LODGING = "lodging"
    CHECKLIST = "checklist"

    @property
    def label(self) -> str:
        """Display name used in email subjects, e.g. 'Lodging'."""
        return self.value.capitalize()


class TripInfo(BaseModel):
    """Trip display fields merged into every stored payload."""

    name: str
    location: str | None = None


class _TripFields(BaseModel):
    trip_name: str | None = None
    trip_destination: str | None = None
    trip_link: str | None = None


class ActivityUpdate(_TripFields):
    kind: Literal["activity"] = "activity"
    activity_name: str | None = None
    activity_date: str | None = None
    activity_time: str | None = None
    activity_location: str | None = None


class TransportationUpdate(_TripFields):
    kind: Literal["transportation"] = "transportation"
    transport_type: str | None = None
    transport_company: str | None = None
    transport_from: str | None = None
    transport_to: str | None = None
    transport_date: str | None = None
    transport_time: str | None = None


class LodgingUpdate(_TripFields):
    kind: Literal["lodging"] = "lodging"
    lodging_name: str | None = None
    lodging_address: str | None = None
    lodging_check_in: str | None = None
    lodging_check_out: str | None = None


class ChecklistUpdate(_TripFields):
    kind: Literal["checklist"] = "checklist"
    checklist_name: str | None = None


TripUpdate = Annotated[
    Union[ActivityUpdate, TransportationUpdate, LodgingUpdate, ChecklistUpdate],
    Field(discriminator="kind"),
]

PAYLOAD_MODELS: dict[UpdateKind, type[_TripFields]] = {
    UpdateKind.ACTIVITY: ActivityUpdate,
    UpdateKind.TRANSPORTATION: TransportationUpdate,
    UpdateKind.LODGING: LodgingUpdate,
    UpdateKind.CHECKLIST: ChecklistUpdate,
}


def enrich_update_data(
    kind: UpdateKind,
    payload: BaseModel | dict[str, Any],
    trip_info: TripInfo,
    trip_link: str,
) -> str:
    """Merge trip display fields into the payload and serialize it for email_queue.update_data."""
    data = payload.model_dump(exclude_none=True) if isinstance(payload, BaseModel) else dict(payload)
    data["kind"] = kind.value
    data["trip_name"] = trip_info.name
    data["trip_destination"] = trip_info.location or UNKNOWN_DESTINATION
    data["trip_link"] = trip_link
    return json.dumps(data)


def parse_update_data(kind: UpdateKind | str, raw: str | None) -> _TripFields:
    """
    Parse a stored update_data blob into the payload model for its kind.
    Malformed JSON or wrong field types fall back to an empty payload (placeholders at render time).
    """
    kind = UpdateKind(kind)
    model = PAYLOAD_MODELS[kind]
    try:
        data = json.loads(raw) if raw else {}
    except (TypeError, json.JSONDecodeError) as e:
        logger.warning("Unparseable %s update_data (%s); using placeholders", kind.value, e)
        data = {}
    if not isinstance(data, dict):
        data = {}
    data["kind"] = kind.value
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning("Invalid %s update_data (%s errors); using placeholders", kind.value, e.error_count())
        trip_fields = {
            k: data[k]
            for k in ("trip_name", "trip_destination", "trip_link")
            if isinstance(data.get(k), str)
        }
        return model(**trip_fields)
