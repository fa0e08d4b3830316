"""Read endpoints for committed boxes and the ideas filed into them."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..memory import BoxRecord, IdeaRecord, InMemoryStore
from ..schemas import BoxView, IdeaView
from ..services import Services, get_services
from ..timeutils import format_time_since

router = APIRouter(prefix="/ideabox/boxes", tags=["boxes"])


def _idea_view(idea: IdeaRecord) -> IdeaView:
    return IdeaView(
        id=idea.id,
        title=idea.title,
        summary=idea.summary,
        pros=idea.pros,
        cons=idea.cons,
        classification=idea.classification,
        created_at=idea.created_at,
        created=format_time_since(idea.created_at),
    )


def _box_view(box: BoxRecord, store: InMemoryStore) -> BoxView:
    return BoxView(
        id=box.id,
        name=box.name,
        fields=dict(box.fields),
        created_at=box.created_at,
        modified_at=box.modified_at,
        updated=format_time_since(box.modified_at),
        ideas=[_idea_view(idea) for idea in store.ideas_for_box(box.id)],
    )


@router.get("", response_model=list[BoxView])
async def list_boxes(services: Services = Depends(get_services)) -> list[BoxView]:
    """Return committed boxes, most recently modified first."""

    store = services.store
    return [_box_view(box, store) for box in store.list_boxes()]


@router.get("/{box_id}", response_model=BoxView)
async def fetch_box(box_id: str, services: Services = Depends(get_services)) -> BoxView:
    box = services.store.get_box(box_id)
    if box is None:
        raise HTTPException(status_code=404, detail=f"Box '{box_id}' not found.")
    return _box_view(box, services.store)
