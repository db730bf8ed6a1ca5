"""Visit endpoints."""

from fastapi import APIRouter, Depends, Request

from visit_engine.api.admin import get_container, require_admin
from visit_engine.api.models import (
    BatchConfirmRequest,
    BulkMergeRequest,
    CalendarAttachRequest,
    ConfirmRequest,
    ManualVisitRequest,
    MergeRequest,
    NotesRequest,
    PhotoIdsRequest,
    ReclassifyRequest,
)
from visit_engine.domain.models import VisitStatus

router = APIRouter(
    prefix="/visits", tags=["visits"], dependencies=[Depends(require_admin)]
)


@router.post("/discover")
async def discover_visits(request: Request) -> dict[str, object]:
    """Cluster unassigned photos into pending visits."""
    progress = await get_container(request).discovery_service.discover()
    return {"progress": progress}


@router.post("/suggestions/recompute")
async def recompute_suggestions(request: Request) -> dict[str, object]:
    """Recompute suggestions for every pending visit."""
    progress = await get_container(request).suggestion_service.recompute_pending()
    return {"progress": progress}


@router.get("/review")
async def review_queue(request: Request) -> dict[str, object]:
    """Return pending visits in review order."""
    return {"items": get_container(request).review_service.pending_for_review()}


@router.get("/merge-groups")
async def merge_groups(request: Request) -> dict[str, object]:
    """Return confirmed visits that look like duplicates."""
    return {"groups": get_container(request).merge_service.find_merge_groups()}


@router.post("/merge-groups/merge")
async def bulk_merge(payload: BulkMergeRequest, request: Request) -> dict[str, object]:
    """Merge every duplicate group into its earliest visit."""
    result = await get_container(request).merge_service.bulk_merge(
        concurrency=payload.concurrency
    )
    return {"result": result}


@router.post("/confirm")
async def batch_confirm(
    payload: BatchConfirmRequest, request: Request
) -> dict[str, object]:
    """Confirm many visits in one call."""
    confirmed = await get_container(request).visit_service.batch_confirm(
        [item.to_domain() for item in payload.confirmations]
    )
    return {"confirmed": confirmed}


@router.post("/manual")
async def create_manual_visit(
    payload: ManualVisitRequest, request: Request
) -> dict[str, object]:
    """Record a visit without photos."""
    visit = get_container(request).visit_service.create_manual_visit(
        restaurant=payload.restaurant.to_domain(),
        visit_time=payload.visit_time,
        notes=payload.notes,
        award_at_visit=payload.award_at_visit,
    )
    return {"visit": visit}


@router.post("/reject-ignored")
async def reject_ignored(request: Request) -> dict[str, object]:
    """Reject pending visits inside ignored locations."""
    rejected = get_container(request).visit_service.reject_in_ignored_locations()
    return {"rejected": rejected}


@router.post("/calendar")
async def attach_calendar_events(
    payload: CalendarAttachRequest, request: Request
) -> dict[str, object]:
    """Attach the best matching calendar events to visits."""
    attached = get_container(request).calendar_service.attach_events(
        [event.to_domain() for event in payload.events]
    )
    return {"attached": attached}


@router.post("/photos/reclassify")
async def reclassify_photos(
    payload: ReclassifyRequest, request: Request
) -> dict[str, object]:
    """Reclassify photos against a keyword set and resync visit flags."""
    progress = get_container(request).food_service.reclassify(payload.keywords)
    return {"progress": progress}


@router.get("")
async def list_visits(
    request: Request, status: VisitStatus = VisitStatus.PENDING
) -> dict[str, object]:
    """Return visits with a status, most recent first."""
    return {"visits": get_container(request).visit_service.list_by_status(status)}


@router.get("/{visit_id}")
async def get_visit(visit_id: str, request: Request) -> dict[str, object]:
    """Return a single visit."""
    return {"visit": get_container(request).visit_service.get(visit_id)}


@router.get("/{visit_id}/suggestions")
async def visit_suggestions(visit_id: str, request: Request) -> dict[str, object]:
    """Return stored suggestions for a visit, nearest first."""
    suggestions = get_container(request).suggestion_service.suggestions_for_visit(
        visit_id
    )
    return {"suggestions": suggestions}


@router.get("/{visit_id}/mergeable")
async def mergeable_visits(
    visit_id: str, request: Request, limit: int = 50
) -> dict[str, object]:
    """Return merge candidates ordered by time proximity."""
    candidates = get_container(request).merge_service.mergeable_candidates(
        visit_id, limit
    )
    return {"visits": candidates}


@router.post("/{visit_id}/merge")
async def merge_visit(
    visit_id: str, payload: MergeRequest, request: Request
) -> dict[str, object]:
    """Fold another visit into this one."""
    visit = await get_container(request).merge_service.merge(
        visit_id, payload.source_id
    )
    return {"visit": visit}


@router.post("/{visit_id}/confirm")
async def confirm_visit(
    visit_id: str, payload: ConfirmRequest, request: Request
) -> dict[str, object]:
    """Confirm a visit against a restaurant."""
    visit = await get_container(request).visit_service.confirm(
        visit_id, payload.restaurant.to_domain(), payload.award_at_visit
    )
    return {"visit": visit}


@router.post("/{visit_id}/reject")
async def reject_visit(visit_id: str, request: Request) -> dict[str, str]:
    """Reject a visit."""
    get_container(request).visit_service.reject(visit_id)
    return {"status": "ok"}


@router.patch("/{visit_id}/notes")
async def update_notes(
    visit_id: str, payload: NotesRequest, request: Request
) -> dict[str, object]:
    """Replace the notes of a visit."""
    visit = get_container(request).visit_service.update_notes(
        visit_id, payload.notes
    )
    return {"visit": visit}


@router.post("/{visit_id}/photos")
async def move_photos(
    visit_id: str, payload: PhotoIdsRequest, request: Request
) -> dict[str, object]:
    """Move photos into this visit."""
    visits = await get_container(request).visit_service.move_photos(
        payload.photo_ids, visit_id
    )
    return {"visits": visits}


@router.post("/{visit_id}/photos/remove")
async def remove_photos(
    visit_id: str, payload: PhotoIdsRequest, request: Request
) -> dict[str, object]:
    """Detach photos from this visit."""
    visit = await get_container(request).visit_service.remove_photos(
        visit_id, payload.photo_ids
    )
    return {"visit": visit}
