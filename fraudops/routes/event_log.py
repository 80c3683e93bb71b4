"""
FraudOps - Routes Event Log (audit trail)
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Optional

from fraudops.routes.deps import get_stores
from fraudops.services.event_logger import list_events as fetch_events

router = APIRouter(prefix="/event-log", tags=["EventLog"])


@router.get("")
async def list_events(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    user: Optional[str] = None,
    limit: int = 100,
    skip: int = 0,
    stores=Depends(get_stores)
):
    """Liste les events avec filtres"""
    events = await fetch_events(
        stores.db, entity_type=entity_type, entity_id=entity_id,
        action=action, user=user, limit=limit, skip=skip
    )
    return {"events": events, "count": len(events)}


@router.get("/actions")
async def list_action_types(stores=Depends(get_stores)):
    """Liste les types d'actions distincts dans le log"""
    actions = await stores.db.event_log.distinct("action")
    return {"actions": sorted(actions)}


@router.get("/{event_id}")
async def get_event(event_id: str, stores=Depends(get_stores)):
    """Détail d'un event"""
    event = await stores.db.event_log.find_one({"id": event_id}, {"_id": 0})
    if not event:
        raise HTTPException(status_code=404, detail="Event non trouvé")
    return event
