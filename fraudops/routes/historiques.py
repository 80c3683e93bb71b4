"""
FraudOps - Routes Historiques (lecture seule)
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Optional

from fraudops.routes.deps import get_stores, split_csv, build_filters

router = APIRouter(prefix="/historiques", tags=["Historiques"])


@router.get("")
async def list_historiques(
    assure_id: Optional[str] = None,
    demande_id: Optional[str] = None,
    cycle_vie_id: Optional[str] = None,
    event_types: Optional[str] = None,   # Comma-separated
    categories: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 100,
    skip: int = 0,
    stores=Depends(get_stores)
):
    filters = build_filters(
        assure_id=assure_id,
        demande_id=demande_id,
        cycle_vie_id=cycle_vie_id,
        event_types=split_csv(event_types),
        categories=split_csv(categories),
        search=search,
        limit=limit,
        skip=skip,
    )
    historiques = await stores.historiques.list(filters)
    return {"historiques": historiques, "count": len(historiques)}


@router.get("/{historique_id}")
async def get_historique(historique_id: str, stores=Depends(get_stores)):
    historique = await stores.historiques.get(historique_id)
    if not historique:
        raise HTTPException(status_code=404, detail="Historique non trouvé")
    return {"historique": historique}
