"""
FraudOps - Routes Demandes
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Optional

from fraudops.models import DemandeCreate, DemandeUpdate, WorkflowActionRequest
from fraudops.routes.deps import get_stores, get_actor, split_csv, build_filters
from fraudops.services.demandes import DemandeService
from fraudops.services.workflow import WorkflowDispatcher

router = APIRouter(prefix="/demandes", tags=["Demandes"])


@router.get("")
async def list_demandes(
    types: Optional[str] = None,         # Comma-separated
    categories: Optional[str] = None,
    statuses: Optional[str] = None,
    priorities: Optional[str] = None,
    channels: Optional[str] = None,
    assure_id: Optional[str] = None,
    assigne_a: Optional[str] = None,
    equipe_traitante: Optional[str] = None,
    date_reception_from: Optional[str] = None,
    date_reception_to: Optional[str] = None,
    respect_sla: Optional[bool] = None,
    en_retard: Optional[bool] = None,
    archived: Optional[bool] = None,
    search: Optional[str] = None,
    limit: int = 100,
    skip: int = 0,
    stores=Depends(get_stores)
):
    """Liste les demandes avec filtres"""
    filters = build_filters(
        types=split_csv(types),
        categories=split_csv(categories),
        statuses=split_csv(statuses),
        priorities=split_csv(priorities),
        channels=split_csv(channels),
        assure_id=assure_id,
        assigne_a=assigne_a,
        equipe_traitante=equipe_traitante,
        date_reception_from=date_reception_from,
        date_reception_to=date_reception_to,
        respect_sla=respect_sla,
        en_retard=en_retard,
        archived=archived,
        search=search,
        limit=limit,
        skip=skip,
    )
    demandes = await stores.demandes.list(filters)
    return {"demandes": demandes, "count": len(demandes)}


@router.get("/overdue")
async def list_overdue(stores=Depends(get_stores)):
    demandes = await DemandeService(stores).list_overdue()
    return {"demandes": demandes, "count": len(demandes)}


@router.get("/pending-validation")
async def list_pending_validation(stores=Depends(get_stores)):
    demandes = await DemandeService(stores).list_pending_validation()
    return {"demandes": demandes, "count": len(demandes)}


@router.get("/{demande_id}")
async def get_demande(demande_id: str, stores=Depends(get_stores)):
    demande = await stores.demandes.get(demande_id)
    if not demande:
        raise HTTPException(status_code=404, detail="Demande non trouvée")
    return {"demande": demande}


@router.post("")
async def create_demande(
    data: DemandeCreate,
    stores=Depends(get_stores),
    actor: str = Depends(get_actor)
):
    demande = await DemandeService(stores).create_demande(data, actor)
    return {"success": True, "demande": demande}


@router.put("/{demande_id}")
async def update_demande(
    demande_id: str,
    data: DemandeUpdate,
    stores=Depends(get_stores),
    actor: str = Depends(get_actor)
):
    demande = await DemandeService(stores).update_demande(demande_id, data, actor)
    return {"success": True, "demande": demande}


@router.post("/{demande_id}/workflow")
async def process_workflow(
    demande_id: str,
    data: WorkflowActionRequest,
    stores=Depends(get_stores),
    actor: str = Depends(get_actor)
):
    """approve | reject | archive | escalate"""
    demande = await WorkflowDispatcher(stores).process_workflow(demande_id, data.action, data.notes, actor)
    return {"success": True, "action": data.action, "demande": demande}
