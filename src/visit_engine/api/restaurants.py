"""Reference restaurant endpoints."""

from fastapi import APIRouter, Depends, Query, Request

from visit_engine.api.admin import get_container, require_admin
from visit_engine.api.models import ReferenceLoadRequest

router = APIRouter(
    prefix="/restaurants", tags=["restaurants"], dependencies=[Depends(require_admin)]
)


@router.post("/reference")
async def load_reference_restaurants(
    payload: ReferenceLoadRequest, request: Request
) -> dict[str, object]:
    """Upsert reference restaurants and rebuild the index on next use."""
    loaded = get_container(request).reference_restaurant_service.load(
        [restaurant.to_domain() for restaurant in payload.restaurants]
    )
    return {"loaded": loaded}


@router.get("/reference/count")
async def count_reference_restaurants(request: Request) -> dict[str, object]:
    """Return the size of the reference set."""
    return {"count": get_container(request).reference_restaurant_service.count()}


@router.get("/nearby")
async def nearby_restaurants(
    request: Request,
    lat: float = Query(ge=-90, le=90),
    lon: float = Query(ge=-180, le=180),
) -> dict[str, object]:
    """Return reference restaurants around a point, nearest first."""
    container = get_container(request)
    result = container.suggestion_service.compute_suggestions("", lat, lon)
    return {
        "suggestions": [
            {
                "restaurant_id": suggestion.restaurant_id,
                "distance_meters": suggestion.distance_meters,
            }
            for suggestion in result.suggestions
        ],
        "primary": result.primary,
    }
