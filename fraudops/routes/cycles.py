"""
FraudOps - Routes Cycles de vie (transitions, prédictions, anomalies)
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Optional

from fraudops.models import CycleVieCreate, CycleVieUpdate, TransitionRequest
from fraudops.routes.deps import get_stores, get_actor, split_csv, build_filters
from fraudops.services.anomaly_detector import AnomalyDetector
from fraudops.services.cycle_vie import CycleVieService
from fraudops.services.transition_engine import StageTransitionEngine

router = APIRouter(prefix="/cycles", tags=["CyclesVie"])


@router.get("")
async def list_cycles(
    stages: Optional[str] = None,        # Comma-separated
    statuses: Optional[str] = None,
    assure_id: Optional[str] = None,
    contract_id: Optional[str] = None,
    validation_required: Optional[bool] = None,
    has_active_alerts: Optional[bool] = None,
    min_duration: Optional[int] = None,
    max_duration: Optional[int] = None,
    limit: int = 100,
    skip: int = 0,
    stores=Depends(get_stores)
):
    filters = build_filters(
        stages=split_csv(stages),
        statuses=split_csv(statuses),
        assure_id=assure_id,
        contract_id=contract_id,
        validation_required=validation_required,
        has_active_alerts=has_active_alerts,
        min_duration=min_duration,
        max_duration=max_duration,
        limit=limit,
        skip=skip,
    )
    cycles = await stores.cycle_vies.list(filters)
    return {"cycles": cycles, "count": len(cycles)}


@router.post("")
async def create_cycle(
    data: CycleVieCreate,
    stores=Depends(get_stores),
    actor: str = Depends(get_actor)
):
    cycle = await CycleVieService(stores).create_cycle_vie(data, actor)
    return {"success": True, "cycle": cycle}


# ==================== ANOMALIES ====================

@router.post("/anomalies/detect")
async def detect_anomalies(refresh_metrics: bool = False, stores=Depends(get_stores)):
    """Balayage à la demande des cycles actifs"""
    alerts = await AnomalyDetector(stores).detect_anomalies(refresh_metrics=refresh_metrics)
    return {"alerts": alerts, "count": len(alerts)}


@router.get("/anomalies")
async def list_anomalies(
    cycle_vie_id: Optional[str] = None,
    types: Optional[str] = None,
    severities: Optional[str] = None,
    unresolved: Optional[bool] = None,
    limit: int = 100,
    skip: int = 0,
    stores=Depends(get_stores)
):
    filters = build_filters(
        cycle_vie_id=cycle_vie_id,
        types=split_csv(types),
        severities=split_csv(severities),
        unresolved=unresolved,
        limit=limit,
        skip=skip,
    )
    alerts = await stores.cycle_alerts.list(filters)
    return {"alerts": alerts, "count": len(alerts)}


@router.post("/anomalies/{alert_id}/acknowledge")
async def acknowledge_anomaly(alert_id: str, stores=Depends(get_stores), actor: str = Depends(get_actor)):
    alert = await AnomalyDetector(stores).acknowledge_alert(alert_id, actor)
    return {"success": True, "alert": alert}


@router.post("/anomalies/{alert_id}/resolve")
async def resolve_anomaly(alert_id: str, stores=Depends(get_stores), actor: str = Depends(get_actor)):
    alert = await AnomalyDetector(stores).resolve_alert(alert_id, actor)
    return {"success": True, "alert": alert}


# ==================== TRANSITIONS ====================

@router.get("/transitions/pending")
async def list_pending_transitions(stores=Depends(get_stores)):
    transitions = await stores.transitions.list({"pending_validation": True})
    return {"transitions": transitions, "count": len(transitions)}


@router.post("/transitions/{transition_id}/validate")
async def validate_transition(transition_id: str, stores=Depends(get_stores), actor: str = Depends(get_actor)):
    transition = await StageTransitionEngine(stores).validate_transition(transition_id, actor)
    return {"success": True, "transition": transition}


# ==================== CYCLE ====================

@router.get("/{cycle_vie_id}")
async def get_cycle(cycle_vie_id: str, stores=Depends(get_stores)):
    cycle = await stores.cycle_vies.get(cycle_vie_id)
    if not cycle:
        raise HTTPException(status_code=404, detail="Cycle de vie non trouvé")
    return {"cycle": cycle}


@router.put("/{cycle_vie_id}")
async def update_cycle(
    cycle_vie_id: str,
    data: CycleVieUpdate,
    stores=Depends(get_stores),
    actor: str = Depends(get_actor)
):
    cycle = await CycleVieService(stores).update_cycle_vie(cycle_vie_id, data, actor)
    return {"success": True, "cycle": cycle}


@router.post("/{cycle_vie_id}/transition")
async def transition_cycle(
    cycle_vie_id: str,
    data: TransitionRequest,
    stores=Depends(get_stores),
    actor: str = Depends(get_actor)
):
    outcome = await StageTransitionEngine(stores).transition(
        cycle_vie_id, data.target_stage, actor, data.context, data.triggered_by_type
    )
    return {"success": True, "cycle": outcome.cycle, "transition": outcome.transition}


@router.get("/{cycle_vie_id}/transitions")
async def list_cycle_transitions(cycle_vie_id: str, stores=Depends(get_stores)):
    transitions = await StageTransitionEngine(stores).list_transitions(cycle_vie_id)
    return {"transitions": transitions, "count": len(transitions)}


@router.get("/{cycle_vie_id}/prediction")
async def get_prediction(cycle_vie_id: str, stores=Depends(get_stores)):
    prediction = await CycleVieService(stores).generate_prediction(cycle_vie_id)
    return {"prediction": prediction}
