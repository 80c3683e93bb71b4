"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FraudOps - Workflow Action Dispatcher                                       ║
║                                                                              ║
║  DEMANDE: approve | reject | archive | escalate                              ║
║  CASE:    assign  | escalate | close | add_note                              ║
║                                                                              ║
║  RÈGLES:                                                                     ║
║  - action inconnue → UnsupportedActionError                                  ║
║  - chaque action ajoute EXACTEMENT une entrée d'historique (ou timeline)     ║
║  - archive: statut completed requis, une seule fois (historique_id)          ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional, Dict, Any, Union
from pydantic import ValidationError as PydanticValidationError

from fraudops.config import now_iso
from fraudops.models import CaseActionRequest
from fraudops.services.demandes import DemandeService
from fraudops.services.historique import HistoriqueService
from fraudops.services.cases import timeline_event
from fraudops.services.errors import (
    ValidationError, NotFoundError, UnsupportedActionError, InvalidTransitionError,
)
from fraudops.services.event_logger import log_event

logger = logging.getLogger("workflow")

DEMANDE_ACTIONS = ("approve", "reject", "archive", "escalate")
CASE_ACTIONS = ("assign", "escalate", "close", "add_note")


class WorkflowDispatcher:

    def __init__(self, stores, demandes: DemandeService = None, historiques: HistoriqueService = None):
        self.stores = stores
        self.demandes = demandes or DemandeService(stores)
        self.historiques = historiques or HistoriqueService(stores)

    # ════════════════════════════════════════════════════════════════════
    # DEMANDES
    # ════════════════════════════════════════════════════════════════════

    async def process_workflow(
        self,
        demande_id: str,
        action: str,
        notes: Optional[str] = None,
        actor: str = "system"
    ) -> Dict[str, Any]:
        if action not in DEMANDE_ACTIONS:
            raise UnsupportedActionError(action, DEMANDE_ACTIONS)

        demande = await self.stores.demandes.get(demande_id)
        if not demande:
            raise NotFoundError("Demande", demande_id)

        previous_status = demande["status"]
        handler = getattr(self, f"_{action}")
        updated = await handler(demande, notes, actor)

        await log_event(
            self.stores.db,
            action=f"workflow_{action}",
            entity_type="demande",
            entity_id=demande_id,
            user=actor,
            details={"old_status": previous_status, "new_status": updated["status"], "notes": notes},
            related={"historique_id": updated.get("historique_id")} if action == "archive" else None,
        )
        logger.info(f"[WORKFLOW] {demande_id} {action} | {previous_status} → {updated['status']} by={actor}")
        return updated

    @staticmethod
    def _entry(action: str, actor: str, commentaire: Optional[str]) -> Dict[str, Any]:
        return {"date": now_iso(), "action": action, "auteur": actor, "commentaire": commentaire}

    async def _decide(self, demande, status: str, decision_type: str, motif: str, action: str, actor: str):
        decision = {
            "type": decision_type,
            "motif": motif,
            "date_decision": now_iso(),
            "decideur": actor,
            "conditions": [],
            "montant_accorde": None,
        }
        return await self.demandes.update_demande(
            demande["id"],
            {"status": status, "decision": decision},
            actor,
            traitement_entry=self._entry(action, actor, motif),
            extra_set={"workflow.etape_actuelle": "cloture", "workflow.etapes_suivantes": []},
        )

    async def _approve(self, demande, notes, actor):
        return await self._decide(demande, "completed", "accepte", notes or "Demande approuvée", "approve", actor)

    async def _reject(self, demande, notes, actor):
        return await self._decide(demande, "rejected", "refuse", notes or "Demande rejetée", "reject", actor)

    async def _escalate(self, demande, notes, actor):
        return await self.demandes.update_demande(
            demande["id"],
            {"status": "escalated", "priority": "urgent"},
            actor,
            traitement_entry=self._entry("escalate", actor, notes or "Demande escaladée"),
            extra_push={"workflow.escalations": {
                "declencheur": "manual",
                "vers": "superviseur",
                "delai": 0,
                "automatique": False,
            }},
        )

    async def _archive(self, demande, notes, actor):
        if demande["status"] != "completed":
            raise InvalidTransitionError(
                f"Archivage impossible: demande {demande['id']} en statut '{demande['status']}' (completed requis)"
            )
        if demande.get("historique_id"):
            raise InvalidTransitionError(
                f"Demande {demande['id']} déjà archivée (historique {demande['historique_id']})"
            )

        historique_id = await self.historiques.create_from_demande(demande)
        return await self.demandes.update_demande(
            demande["id"],
            {},
            actor,
            traitement_entry=self._entry("archive", actor, notes or f"Archivée dans l'historique {historique_id}"),
            extra_set={
                "historique_id": historique_id,
                "archived_at": now_iso(),
                "metadata.archived": True,
            },
        )

    # ════════════════════════════════════════════════════════════════════
    # DOSSIERS
    # ════════════════════════════════════════════════════════════════════

    async def process_case_action(
        self,
        case_id: str,
        request: Union[CaseActionRequest, Dict[str, Any]],
        actor: str = "system"
    ) -> Dict[str, Any]:
        if not isinstance(request, CaseActionRequest):
            try:
                request = CaseActionRequest.model_validate(request)
            except PydanticValidationError as e:
                raise ValidationError(f"Action invalide: {e.errors()}") from e

        if request.action not in CASE_ACTIONS:
            raise UnsupportedActionError(request.action, CASE_ACTIONS)

        case = await self.stores.cases.get(case_id)
        if not case:
            raise NotFoundError("Case", case_id)
        if case["status"] == "closed" and request.action != "add_note":
            raise InvalidTransitionError(f"Dossier {case_id} clos: action '{request.action}' impossible")

        set_data: Dict[str, Any] = {"updated_at": now_iso()}
        push_data: Dict[str, Any] = {}

        if request.action == "assign":
            if not request.assign_to:
                raise ValidationError("assign_to requis pour l'action assign")
            set_data["investigator"] = request.assign_to
            if case["status"] == "open":
                set_data["status"] = "investigating"
            event = timeline_event("assigned", f"Assigné à {request.assign_to} (investigator)", actor)

        elif request.action == "escalate":
            set_data["priority"] = "urgent"
            event = timeline_event(
                "escalated", f"Priorité {case['priority']} → urgent" + (f" - {request.notes}" if request.notes else ""), actor
            )
            if request.notes:
                push_data["notes"] = request.notes

        elif request.action == "close":
            decision = request.model_dump(mode="json").get("decision")
            if not decision or decision == "pending":
                raise ValidationError("Décision finale requise pour clore un dossier")
            metrics = {**case.get("metrics", {}), **(request.metrics or {})}
            metrics["total_roi"] = (
                metrics.get("recovered_amount", 0) + metrics.get("prevented_amount", 0)
                - metrics.get("investigation_cost", 0)
            )
            timestamp = now_iso()
            set_data.update({
                "status": "closed",
                "decision": decision,
                "decision_reason": request.notes,
                "decision_date": timestamp,
                "closed_at": timestamp,
                "metrics": metrics,
            })
            event = timeline_event(
                "closed", f"Décision: {decision}" + (f" - {request.notes}" if request.notes else ""), actor
            )

        else:
            if not request.notes:
                raise ValidationError("notes requis pour l'action add_note")
            push_data["notes"] = request.notes
            event = timeline_event("note_added", request.notes, actor)

        push_data["timeline"] = event
        updated = await self.stores.cases.apply(case_id, {"$set": set_data, "$push": push_data})

        await log_event(
            self.stores.db,
            action=f"case_{request.action}",
            entity_type="case",
            entity_id=case_id,
            user=actor,
            details={"old_status": case["status"], "new_status": updated["status"], "notes": request.notes},
        )
        logger.info(f"[WORKFLOW] Case {case_id} {request.action} by={actor}")
        return updated
