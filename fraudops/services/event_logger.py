"""
FraudOps - Event Logger

Journal d'audit centralisé de toutes les actions qui modifient un état.
Une seule fonction appelée depuis les services.
"""

import uuid
from typing import Optional, List, Dict, Any

from fraudops.config import now_iso


async def log_event(
    db,
    action: str,
    entity_type: str,
    entity_id: str,
    user: str = "system",
    details: dict = None,
    related: dict = None
):
    """
    Écrit un évènement dans la collection event_log.

    Args:
        db: base cible (celle des stores)
        action: ex. stage_transition, workflow_approve, anomaly_detected
        entity_type: demande | cycle_vie | cycle_alert | alert | case
        entity_id: ID de l'entité principale
        user: acteur de l'action
        details: dict libre (ancien/nouveau statut, motif...)
        related: IDs liés (cycle_vie_id, historique_id, alert_ids...)
    """
    event = {
        "id": str(uuid.uuid4()),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "user": user,
        "details": details or {},
        "related": related or {},
        "created_at": now_iso()
    }
    await db.event_log.insert_one(dict(event))
    return event


async def list_events(
    db,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    user: Optional[str] = None,
    limit: int = 100,
    skip: int = 0
) -> List[Dict[str, Any]]:
    query = {}
    if entity_type:
        query["entity_type"] = entity_type
    if entity_id:
        query["entity_id"] = entity_id
    if action:
        query["action"] = action
    if user:
        query["user"] = user

    return await db.event_log.find(
        query, {"_id": 0}, sort=[("created_at", -1)], skip=skip, limit=limit
    ).to_list(limit)
