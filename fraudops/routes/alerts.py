"""
FraudOps - Routes Alertes fraude
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional, List

from fraudops.models import FraudAlertCreate, FraudAlertUpdate
from fraudops.routes.deps import get_stores, get_actor, split_csv, build_filters
from fraudops.services.cases import AlertService

router = APIRouter(prefix="/alerts", tags=["Alertes"])


class AlertAssignment(BaseModel):
    alert_ids: List[str]
    assign_to: str


@router.get("")
async def list_alerts(
    statuses: Optional[str] = None,      # Comma-separated
    severities: Optional[str] = None,
    sources: Optional[str] = None,
    assigned_to: Optional[str] = None,
    team: Optional[str] = None,
    created_from: Optional[str] = None,
    created_to: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 100,
    skip: int = 0,
    stores=Depends(get_stores)
):
    filters = build_filters(
        statuses=split_csv(statuses),
        severities=split_csv(severities),
        sources=split_csv(sources),
        assigned_to=assigned_to,
        team=team,
        created_from=created_from,
        created_to=created_to,
        search=search,
        limit=limit,
        skip=skip,
    )
    alerts = await stores.alerts.list(filters)
    return {"alerts": alerts, "count": len(alerts)}


@router.get("/{alert_id}")
async def get_alert(alert_id: str, stores=Depends(get_stores)):
    alert = await stores.alerts.get(alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alerte non trouvée")
    return {"alert": alert}


@router.post("")
async def create_alert(data: FraudAlertCreate, stores=Depends(get_stores), actor: str = Depends(get_actor)):
    alert = await AlertService(stores).create_alert(data, actor)
    return {"success": True, "alert": alert}


@router.put("/{alert_id}")
async def update_alert(
    alert_id: str,
    data: FraudAlertUpdate,
    stores=Depends(get_stores),
    actor: str = Depends(get_actor)
):
    alert = await AlertService(stores).update_alert(alert_id, data, actor)
    return {"success": True, "alert": alert}


@router.post("/assign")
async def assign_alerts(data: AlertAssignment, stores=Depends(get_stores), actor: str = Depends(get_actor)):
    alerts = await AlertService(stores).assign_alerts(data.alert_ids, data.assign_to, actor)
    return {"success": True, "assigned": len(alerts)}


@router.delete("/{alert_id}")
async def delete_alert(alert_id: str, stores=Depends(get_stores), actor: str = Depends(get_actor)):
    await AlertService(stores).remove_alert(alert_id, actor)
    return {"success": True, "deleted_id": alert_id}
