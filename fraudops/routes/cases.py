"""
FraudOps - Routes Dossiers d'investigation
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Optional

from fraudops.models import CaseCreate, CaseActionRequest
from fraudops.routes.deps import get_stores, get_actor, split_csv, build_filters
from fraudops.services.cases import CaseService
from fraudops.services.workflow import WorkflowDispatcher

router = APIRouter(prefix="/cases", tags=["Dossiers"])


@router.get("")
async def list_cases(
    statuses: Optional[str] = None,      # Comma-separated
    priorities: Optional[str] = None,
    decisions: Optional[str] = None,
    investigator: Optional[str] = None,
    supervisor: Optional[str] = None,
    tags: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 100,
    skip: int = 0,
    stores=Depends(get_stores)
):
    filters = build_filters(
        statuses=split_csv(statuses),
        priorities=split_csv(priorities),
        decisions=split_csv(decisions),
        investigator=investigator,
        supervisor=supervisor,
        tags=split_csv(tags),
        search=search,
        limit=limit,
        skip=skip,
    )
    cases = await stores.cases.list(filters)
    return {"cases": cases, "count": len(cases)}


@router.get("/{case_id}")
async def get_case(case_id: str, stores=Depends(get_stores)):
    case = await stores.cases.get(case_id)
    if not case:
        raise HTTPException(status_code=404, detail="Dossier non trouvé")
    return {"case": case}


@router.post("")
async def create_case(data: CaseCreate, stores=Depends(get_stores), actor: str = Depends(get_actor)):
    """Crée un dossier à partir d'alertes existantes"""
    case = await CaseService(stores).create_case_from_alerts(data, actor)
    return {"success": True, "case": case}


@router.post("/{case_id}/actions")
async def case_action(
    case_id: str,
    data: CaseActionRequest,
    stores=Depends(get_stores),
    actor: str = Depends(get_actor)
):
    """assign | escalate | close | add_note"""
    case = await WorkflowDispatcher(stores).process_case_action(case_id, data, actor)
    return {"success": True, "action": data.action, "case": case}


@router.delete("/{case_id}")
async def delete_case(case_id: str, stores=Depends(get_stores), actor: str = Depends(get_actor)):
    await CaseService(stores).remove_case(case_id, actor)
    return {"success": True, "deleted_id": case_id}
