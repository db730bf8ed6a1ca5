"""Pydantic request models for the engine API."""

from pydantic import AwareDatetime, BaseModel, Field

from visit_engine.domain.calendar import CalendarEvent
from visit_engine.domain.models import ConfirmedRestaurant, ReferenceRestaurant
from visit_engine.domain.visits import VisitConfirmation


class RestaurantPayload(BaseModel):
    """A user restaurant to link a visit to."""

    id: str
    name: str
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    def to_domain(self) -> ConfirmedRestaurant:
        return ConfirmedRestaurant(
            id=self.id,
            name=self.name,
            latitude=self.latitude,
            longitude=self.longitude,
        )


class ConfirmRequest(BaseModel):
    """Confirmation of a single visit."""

    restaurant: RestaurantPayload
    award_at_visit: str | None = None


class BatchConfirmItem(ConfirmRequest):
    """Confirmation entry of a batch."""

    visit_id: str

    def to_domain(self) -> VisitConfirmation:
        return VisitConfirmation(
            visit_id=self.visit_id,
            restaurant=self.restaurant.to_domain(),
            award_at_visit=self.award_at_visit,
        )


class BatchConfirmRequest(BaseModel):
    """Confirmation of many visits at once."""

    confirmations: list[BatchConfirmItem]


class MergeRequest(BaseModel):
    """Visit to fold into the target."""

    source_id: str


class NotesRequest(BaseModel):
    """Replacement notes for a visit."""

    notes: str | None = None


class ManualVisitRequest(BaseModel):
    """A visit recorded without photos."""

    restaurant: RestaurantPayload
    visit_time: AwareDatetime
    notes: str | None = None
    award_at_visit: str | None = None


class PhotoIdsRequest(BaseModel):
    """Photo ids to move or detach."""

    photo_ids: list[str] = Field(min_length=1)


class ReclassifyRequest(BaseModel):
    """Optional keyword override for reclassification."""

    keywords: list[str] | None = None


class CalendarEventPayload(BaseModel):
    """A calendar event offered for attachment."""

    id: str
    title: str
    start_time: AwareDatetime
    end_time: AwareDatetime
    location: str | None = None
    notes: str | None = None
    is_all_day: bool = False

    def to_domain(self) -> CalendarEvent:
        return CalendarEvent(
            id=self.id,
            title=self.title,
            start_time=self.start_time,
            end_time=self.end_time,
            location=self.location,
            notes=self.notes,
            is_all_day=self.is_all_day,
        )


class CalendarAttachRequest(BaseModel):
    """Events from the calendar collaborator."""

    events: list[CalendarEventPayload]


class ReferenceRestaurantPayload(BaseModel):
    """An entry of the curated reference dataset."""

    id: str
    name: str
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: str = ""
    location: str = ""
    cuisine: str = ""
    award: str = ""

    def to_domain(self) -> ReferenceRestaurant:
        return ReferenceRestaurant(**self.model_dump())


class ReferenceLoadRequest(BaseModel):
    """Bulk upsert of reference restaurants."""

    restaurants: list[ReferenceRestaurantPayload]


class BulkMergeRequest(BaseModel):
    """Concurrency bound for a bulk merge run."""

    concurrency: int = Field(default=4, ge=1, le=32)
