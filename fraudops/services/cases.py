"""
FraudOps - Alertes fraude et dossiers d'investigation

Alert: pending → assigned → in_review → qualified / rejected
Case:  open → investigating → pending_review → closed

Un dossier est créé à partir d'une ou plusieurs alertes existantes,
qui passent alors en in_review.
"""

import uuid
import logging
from typing import Optional, List, Dict, Any, Union
from pydantic import ValidationError as PydanticValidationError

from fraudops.config import now_iso
from fraudops.models import FraudAlertCreate, FraudAlertUpdate, CaseCreate
from fraudops.services.errors import ValidationError, NotFoundError
from fraudops.services.event_logger import log_event

logger = logging.getLogger("cases")


def severity_from_score(score: int) -> str:
    if score >= 85:
        return "critical"
    if score >= 70:
        return "high"
    if score >= 50:
        return "medium"
    return "low"


def timeline_event(event_type: str, description: str, user: str, **extra) -> Dict[str, Any]:
    return {
        "id": f"evt-{uuid.uuid4().hex[:8]}",
        "type": event_type,
        "description": description,
        "user_id": user,
        "timestamp": now_iso(),
        **extra,
    }


def _validate(model_cls, payload):
    if isinstance(payload, model_cls):
        return payload
    try:
        return model_cls.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(f"{model_cls.__name__} invalide: {e.errors()}") from e


class AlertService:

    def __init__(self, stores):
        self.stores = stores

    async def create_alert(self, payload: Union[FraudAlertCreate, Dict[str, Any]], user: str = "system") -> Dict[str, Any]:
        request = _validate(FraudAlertCreate, payload)
        data = request.model_dump(mode="json")
        if "severity" not in request.model_fields_set and request.score:
            data["severity"] = severity_from_score(request.score)

        alert = await self.stores.alerts.create({
            **data,
            "status": "assigned" if data.get("assigned_to") else "pending",
            "qualification": None,
            "case_id": None,
            "created_by": user,
        })
        logger.info(f"[ALERT] {alert['id']} créée | type={alert['type']} severity={alert['severity']}")
        return alert

    async def get_alert(self, alert_id: str) -> Optional[Dict[str, Any]]:
        return await self.stores.alerts.get(alert_id)

    async def update_alert(self, alert_id: str, payload: Union[FraudAlertUpdate, Dict[str, Any]], user: str = "system") -> Dict[str, Any]:
        request = _validate(FraudAlertUpdate, payload)
        changes = request.model_dump(mode="json", exclude_none=True)
        if "qualification" in changes:
            changes.setdefault("status", "qualified")
            changes["qualified_at"] = now_iso()
            changes["impacts_risk"] = changes["qualification"] == "fraud_confirmed"

        alert = await self.stores.alerts.update(alert_id, changes)
        if not alert:
            raise NotFoundError("Alert", alert_id)

        await log_event(self.stores.db, "alert_update", "alert", alert_id, user, details=changes)
        return alert

    async def assign_alerts(self, alert_ids: List[str], assign_to: str, user: str = "system") -> List[Dict[str, Any]]:
        assigned = []
        for alert_id in alert_ids:
            alert = await self.stores.alerts.update(alert_id, {
                "assigned_to": assign_to,
                "assigned_at": now_iso(),
                "status": "assigned",
            })
            if alert:
                assigned.append(alert)
        logger.info(f"[ALERT] {len(assigned)}/{len(alert_ids)} alertes assignées à {assign_to}")
        return assigned

    async def remove_alert(self, alert_id: str, user: str = "system") -> bool:
        removed = await self.stores.alerts.remove(alert_id)
        if not removed:
            raise NotFoundError("Alert", alert_id)
        await log_event(self.stores.db, "alert_remove", "alert", alert_id, user)
        return True


class CaseService:

    def __init__(self, stores):
        self.stores = stores

    async def _next_reference(self) -> str:
        count = await self.stores.cases.collection.count_documents({})
        return f"CASE-{count + 1:04d}"

    async def create_case_from_alerts(self, payload: Union[CaseCreate, Dict[str, Any]], user: str = "system") -> Dict[str, Any]:
        request = _validate(CaseCreate, payload)
        if not request.alert_ids:
            raise ValidationError("Au moins une alerte est requise pour créer un dossier")

        alerts = []
        for alert_id in request.alert_ids:
            alert = await self.stores.alerts.get(alert_id)
            if not alert:
                raise NotFoundError("Alert", alert_id)
            alerts.append(alert)

        primary = request.primary_alert_id or request.alert_ids[0]
        if primary not in request.alert_ids:
            raise ValidationError(f"primary_alert_id {primary} absent de alert_ids")

        team = request.investigation_team
        handover = bool(request.assign_to and request.assign_to != user)
        description = (
            f"Dossier créé et transféré à l'équipe {team} à partir de {len(alerts)} alerte(s)"
            if handover else f"Dossier créé à partir de {len(alerts)} alerte(s)"
        )

        case = await self.stores.cases.create({
            "reference": await self._next_reference(),
            "alerts": list(request.alert_ids),
            "primary_alert_id": primary,
            "status": "open",
            "priority": request.model_dump(mode="json")["priority"],
            "investigator": request.assign_to,
            "supervisor": None,
            "investigation_team": team,
            "decision": "pending",
            "decision_reason": None,
            "decision_date": None,
            "metrics": {
                "estimated_loss": request.estimated_loss,
                "recovered_amount": 0,
                "prevented_amount": 0,
                "investigation_cost": 0,
                "total_roi": 0,
            },
            "timeline": [timeline_event("created", description, user)],
            "notes": [request.notes] if request.notes else [],
            "tags": ["handover", f"to-{team}"] if handover else [],
            "created_by": user,
            "closed_at": None,
        })

        for alert in alerts:
            await self.stores.alerts.update(alert["id"], {"status": "in_review", "case_id": case["id"]})

        await log_event(
            self.stores.db, "case_create", "case", case["id"], user,
            details={"priority": case["priority"], "team": team},
            related={"alert_ids": list(request.alert_ids)},
        )
        logger.info(f"[CASE] {case['reference']} créé depuis {len(alerts)} alerte(s)")
        return case

    async def get_case(self, case_id: str) -> Optional[Dict[str, Any]]:
        return await self.stores.cases.get(case_id)

    async def remove_case(self, case_id: str, user: str = "system") -> bool:
        removed = await self.stores.cases.remove(case_id)
        if not removed:
            raise NotFoundError("Case", case_id)
        await log_event(self.stores.db, "case_remove", "case", case_id, user)
        return True
