"""
FraudOps - Workflow demandes & dossiers
Tests: approve/reject/escalate/archive, actions dossier, création de dossier depuis alertes.
Run: pytest fraudops/tests/test_workflow.py -v
"""

import pytest

from fraudops.services.cases import AlertService, CaseService, severity_from_score
from fraudops.services.demandes import DemandeService
from fraudops.services.errors import (
    InvalidTransitionError, NotFoundError, UnsupportedActionError, ValidationError,
)
from fraudops.services.workflow import WorkflowDispatcher


async def _demande(stores, demande_payload, **overrides):
    return await DemandeService(stores).create_demande(demande_payload(**overrides), "agent")


def _history(demande):
    return demande["traitement"]["historique_traitement"]


# ═══════════════════════════════════════════════════════════════
# 1. DEMANDES
# ═══════════════════════════════════════════════════════════════

class TestDemandeWorkflow:
    async def test_approve(self, stores, demande_payload):
        demande = await _demande(stores, demande_payload)
        updated = await WorkflowDispatcher(stores).process_workflow(demande["id"], "approve", None, "superviseur")

        assert updated["status"] == "completed"
        assert updated["traitement"]["decision"]["type"] == "accepte"
        assert updated["traitement"]["decision"]["decideur"] == "superviseur"
        assert updated["sla"]["date_traitement"] is not None
        assert updated["workflow"]["etape_actuelle"] == "cloture"
        assert len(_history(updated)) == len(_history(demande)) + 1
        assert _history(updated)[-1]["action"] == "approve"

    async def test_reject_with_reason(self, stores, demande_payload):
        demande = await _demande(stores, demande_payload)
        updated = await WorkflowDispatcher(stores).process_workflow(demande["id"], "reject", "Hors garantie")

        assert updated["status"] == "rejected"
        assert updated["traitement"]["decision"]["type"] == "refuse"
        assert updated["traitement"]["decision"]["motif"] == "Hors garantie"
        assert len(_history(updated)) == 2

    async def test_escalate(self, stores, demande_payload):
        demande = await _demande(stores, demande_payload, priority="low")
        updated = await WorkflowDispatcher(stores).process_workflow(demande["id"], "escalate", "note")

        assert updated["priority"] == "urgent"
        assert updated["status"] == "escalated"
        assert _history(updated)[-1]["commentaire"] == "note"
        assert updated["workflow"]["escalations"][-1]["declencheur"] == "manual"

    async def test_archive_requires_completed(self, stores, demande_payload):
        demande = await _demande(stores, demande_payload)
        with pytest.raises(InvalidTransitionError):
            await WorkflowDispatcher(stores).process_workflow(demande["id"], "archive")
        assert await stores.historiques.count() == 0

    async def test_archive_creates_historique_once(self, stores, demande_payload):
        demande = await _demande(stores, demande_payload)
        dispatcher = WorkflowDispatcher(stores)
        await dispatcher.process_workflow(demande["id"], "approve")
        archived = await dispatcher.process_workflow(demande["id"], "archive")

        assert archived["historique_id"].startswith("HIST-")
        assert archived["metadata"]["archived"] is True
        assert archived["archived_at"] is not None

        historique = await stores.historiques.get(archived["historique_id"])
        assert historique["demande_id"] == demande["id"]

        with pytest.raises(InvalidTransitionError):
            await dispatcher.process_workflow(demande["id"], "archive")
        assert await stores.historiques.count() == 1

    async def test_unsupported_action(self, stores, demande_payload):
        demande = await _demande(stores, demande_payload)
        with pytest.raises(UnsupportedActionError):
            await WorkflowDispatcher(stores).process_workflow(demande["id"], "delete")

    async def test_unknown_demande(self, stores):
        with pytest.raises(NotFoundError):
            await WorkflowDispatcher(stores).process_workflow("DEM-NOPE", "approve")

    async def test_action_logged(self, stores, demande_payload):
        demande = await _demande(stores, demande_payload)
        await WorkflowDispatcher(stores).process_workflow(demande["id"], "approve", None, "superviseur")
        event = await stores.db.event_log.find_one({"action": "workflow_approve"}, {"_id": 0})
        assert event["user"] == "superviseur"
        assert event["details"]["new_status"] == "completed"


# ═══════════════════════════════════════════════════════════════
# 2. ALERTES & CRÉATION DE DOSSIER
# ═══════════════════════════════════════════════════════════════

class TestAlertsAndCaseCreation:
    def test_severity_from_score(self):
        assert severity_from_score(90) == "critical"
        assert severity_from_score(75) == "high"
        assert severity_from_score(55) == "medium"
        assert severity_from_score(10) == "low"

    async def test_create_case_moves_alerts_to_review(self, stores):
        alerts = AlertService(stores)
        a1 = await alerts.create_alert({"type": "document_fraud", "score": 88})
        a2 = await alerts.create_alert({"type": "pattern", "score": 40})
        assert a1["severity"] == "critical"

        case = await CaseService(stores).create_case_from_alerts(
            {"alert_ids": [a1["id"], a2["id"]], "priority": "high"}, "analyste"
        )
        assert case["reference"] == "CASE-0001"
        assert case["primary_alert_id"] == a1["id"]
        assert case["status"] == "open"
        assert len(case["timeline"]) == 1

        for alert_id in (a1["id"], a2["id"]):
            alert = await stores.alerts.get(alert_id)
            assert alert["status"] == "in_review"
            assert alert["case_id"] == case["id"]

    async def test_create_case_unknown_alert(self, stores):
        with pytest.raises(NotFoundError):
            await CaseService(stores).create_case_from_alerts({"alert_ids": ["ALERT-NOPE"]})

    async def test_create_case_without_alerts(self, stores):
        with pytest.raises(ValidationError):
            await CaseService(stores).create_case_from_alerts({"alert_ids": []})


# ═══════════════════════════════════════════════════════════════
# 3. ACTIONS DOSSIER
# ═══════════════════════════════════════════════════════════════

class TestCaseActions:
    @pytest.fixture
    async def case(self, stores):
        alert = await AlertService(stores).create_alert({"type": "document_fraud", "score": 60})
        return await CaseService(stores).create_case_from_alerts({"alert_ids": [alert["id"]]}, "analyste")

    async def test_assign(self, stores, case):
        updated = await WorkflowDispatcher(stores).process_case_action(
            case["id"], {"action": "assign", "assign_to": "inv.moreau"}, "superviseur"
        )
        assert updated["investigator"] == "inv.moreau"
        assert updated["status"] == "investigating"
        assert len(updated["timeline"]) == 2

    async def test_escalate(self, stores, case):
        updated = await WorkflowDispatcher(stores).process_case_action(
            case["id"], {"action": "escalate", "notes": "Montant élevé"}
        )
        assert updated["priority"] == "urgent"
        assert updated["timeline"][-1]["type"] == "escalated"
        assert "Montant élevé" in updated["notes"]

    async def test_close_computes_roi(self, stores, case):
        updated = await WorkflowDispatcher(stores).process_case_action(case["id"], {
            "action": "close",
            "decision": "fraud_confirmed",
            "notes": "Faux documents",
            "metrics": {"recovered_amount": 1000, "prevented_amount": 500, "investigation_cost": 200},
        })
        assert updated["status"] == "closed"
        assert updated["decision"] == "fraud_confirmed"
        assert updated["metrics"]["total_roi"] == 1300
        assert updated["closed_at"] is not None

    async def test_close_requires_decision(self, stores, case):
        with pytest.raises(ValidationError):
            await WorkflowDispatcher(stores).process_case_action(case["id"], {"action": "close"})

    async def test_closed_case_accepts_only_notes(self, stores, case):
        dispatcher = WorkflowDispatcher(stores)
        await dispatcher.process_case_action(case["id"], {"action": "close", "decision": "fraud_rejected"})

        with pytest.raises(InvalidTransitionError):
            await dispatcher.process_case_action(case["id"], {"action": "assign", "assign_to": "x"})

        updated = await dispatcher.process_case_action(case["id"], {"action": "add_note", "notes": "Archivé"})
        assert updated["notes"][-1] == "Archivé"
        assert updated["timeline"][-1]["type"] == "note_added"

    async def test_unsupported_case_action(self, stores, case):
        with pytest.raises(UnsupportedActionError):
            await WorkflowDispatcher(stores).process_case_action(case["id"], {"action": "reopen"})
