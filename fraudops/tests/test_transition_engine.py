"""
FraudOps - Stage Transition Engine
Tests: ordre des étapes, conditions, stage_history, validation, conditions unitaires.
Run: pytest fraudops/tests/test_transition_engine.py -v
"""

import pytest

from fraudops.models import RuleCondition
from fraudops.services.cycle_vie import CycleVieService
from fraudops.services.errors import InvalidTransitionError, NotFoundError, ValidationError
from fraudops.services.transition_engine import StageTransitionEngine, evaluate_condition


def _open_entries(cycle):
    return [e for e in cycle["stage_history"] if not e.get("exited_at")]


async def _new_cycle(stores, **souscription):
    return await CycleVieService(stores).create_cycle_vie({
        "assure_id": "ASSURE-0001",
        "contract_id": "CONT-2024-001",
        "souscription": souscription,
    }, "agent.kyc")


# ═══════════════════════════════════════════════════════════════
# 1. TRANSITIONS AUTORISÉES
# ═══════════════════════════════════════════════════════════════

class TestForwardTransition:
    async def test_conditions_met_no_validation(self, stores):
        cycle = await _new_cycle(stores, validation_kyc=True)
        outcome = await StageTransitionEngine(stores).transition(
            cycle["id"], "vie_contrat", "agent.kyc",
            context={"documents_requis": "complete", "documents": ["contrat_signe"]},
        )

        updated = outcome.cycle
        assert updated["current_stage"] == "vie_contrat"
        assert updated["progression"] == 40
        assert updated["validation_requise"] is False
        assert updated["documents_manquants"] == []
        assert updated["actions_pendantes"] == ["kyc_validation"]

        open_entries = _open_entries(updated)
        assert len(open_entries) == 1
        assert open_entries[0]["stage"] == "vie_contrat"
        closed = updated["stage_history"][0]
        assert closed["stage"] == "souscription"
        assert closed["exited_at"] is not None
        assert closed["duration"] == 0

        transition = outcome.transition
        assert transition["from_stage"] == "souscription"
        assert transition["to_stage"] == "vie_contrat"
        assert transition["validation_required"] is False
        assert transition["metadata"]["conditions_met"] is True

    async def test_unmet_condition_flags_validation(self, stores):
        cycle = await _new_cycle(stores, validation_kyc=False)
        outcome = await StageTransitionEngine(stores).transition(cycle["id"], "vie_contrat")
        assert outcome.cycle["current_stage"] == "vie_contrat"
        assert outcome.cycle["validation_requise"] is True
        assert outcome.cycle["documents_manquants"] == ["contrat_signe"]
        assert outcome.transition["metadata"]["conditions_met"] is False

    async def test_manual_rule_to_resiliation(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="vie_contrat")
        outcome = await StageTransitionEngine(stores).transition(
            cycle["id"], "resiliation", "gestionnaire",
            context={"resiliation_request": True, "documents": ["lettre_resiliation"]},
        )
        assert outcome.cycle["current_stage"] == "resiliation"
        assert outcome.cycle["status"] == "completed"
        assert outcome.cycle["progression"] == 100
        assert outcome.cycle["validation_requise"] is True
        assert outcome.transition["validation_required"] is True

    async def test_same_stage_is_noop(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="vie_contrat")
        outcome = await StageTransitionEngine(stores).transition(cycle["id"], "vie_contrat")
        assert outcome.transition is None
        assert outcome.cycle["updated_at"] == cycle["updated_at"]
        assert await stores.transitions.count() == 0

    async def test_transition_is_logged(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="vie_contrat")
        await StageTransitionEngine(stores).transition(cycle["id"], "sinistre_paiement", "agent")
        event = await stores.db.event_log.find_one({"action": "stage_transition"}, {"_id": 0})
        assert event["entity_id"] == cycle["id"]
        assert event["details"]["to_stage"] == "sinistre_paiement"


# ═══════════════════════════════════════════════════════════════
# 2. TRANSITIONS REFUSÉES
# ═══════════════════════════════════════════════════════════════

class TestRejectedTransition:
    async def test_backward_rejected(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="sinistre_paiement")
        with pytest.raises(InvalidTransitionError):
            await StageTransitionEngine(stores).transition(cycle["id"], "vie_contrat")
        unchanged = await stores.cycle_vies.get(cycle["id"])
        assert unchanged["current_stage"] == "sinistre_paiement"

    async def test_no_rule_rejected(self, stores):
        cycle = await _new_cycle(stores)
        with pytest.raises(InvalidTransitionError):
            await StageTransitionEngine(stores).transition(cycle["id"], "sinistre_paiement")

    async def test_terminal_stage_rejected(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="resiliation", status="completed")
        with pytest.raises(InvalidTransitionError):
            await StageTransitionEngine(stores).transition(cycle["id"], "vie_contrat")

    async def test_unknown_cycle(self, stores):
        with pytest.raises(NotFoundError):
            await StageTransitionEngine(stores).transition("CYCLE-NOPE", "vie_contrat")

    async def test_unknown_stage(self, stores, insert_cycle):
        cycle = await insert_cycle()
        with pytest.raises(ValidationError):
            await StageTransitionEngine(stores).transition(cycle["id"], "expertise")


# ═══════════════════════════════════════════════════════════════
# 3. VALIDATION
# ═══════════════════════════════════════════════════════════════

class TestValidateTransition:
    async def test_validation_clears_flag(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="vie_contrat")
        engine = StageTransitionEngine(stores)
        outcome = await engine.transition(cycle["id"], "resiliation", context={"resiliation_request": True})

        transition = await engine.validate_transition(outcome.transition["id"], "manager")
        assert transition["validated_by"] == "manager"
        assert transition["validated_at"] is not None
        assert (await stores.cycle_vies.get(cycle["id"]))["validation_requise"] is False

    async def test_validation_set_once(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="vie_contrat")
        engine = StageTransitionEngine(stores)
        outcome = await engine.transition(cycle["id"], "resiliation")
        first = await engine.validate_transition(outcome.transition["id"], "manager")
        second = await engine.validate_transition(outcome.transition["id"], "autre")
        assert second["validated_by"] == "manager"
        assert second["validated_at"] == first["validated_at"]

    async def test_unknown_transition(self, stores):
        with pytest.raises(NotFoundError):
            await StageTransitionEngine(stores).validate_transition("TRANS-NOPE")


# ═══════════════════════════════════════════════════════════════
# 4. UNIT: évaluation des conditions
# ═══════════════════════════════════════════════════════════════

class TestEvaluateCondition:
    CYCLE = {
        "current_stage": "souscription",
        "metriques": {"nombre_sinistres": 3},
        "souscription": {"validation_kyc": True, "documents_requis": ["permis_conduire"]},
    }

    def test_equals_from_context_first(self):
        cond = RuleCondition(field="validation_kyc", value=True)
        assert evaluate_condition(cond, {}, self.CYCLE) is True
        assert evaluate_condition(cond, {"validation_kyc": False}, self.CYCLE) is False

    def test_dotted_path_on_cycle(self):
        cond = RuleCondition(field="metriques.nombre_sinistres", operator="greater_than", value=2)
        assert evaluate_condition(cond, {}, self.CYCLE) is True
        cond = RuleCondition(field="metriques.nombre_sinistres", operator="less_than", value=2)
        assert evaluate_condition(cond, {}, self.CYCLE) is False

    def test_contains(self):
        cond = RuleCondition(field="documents_requis", operator="contains", value="permis_conduire")
        assert evaluate_condition(cond, {}, self.CYCLE) is True

    def test_missing_field_is_unmet(self):
        cond = RuleCondition(field="sinistre_declared", value=True)
        assert evaluate_condition(cond, {}, self.CYCLE) is False

    def test_incomparable_types_unmet(self):
        cond = RuleCondition(field="validation_kyc", operator="greater_than", value="abc")
        assert evaluate_condition(cond, {"validation_kyc": None}, self.CYCLE) is False
