"""
FraudOps - Cycle de vie: création, mise à jour, métriques, prédiction
Run: pytest fraudops/tests/test_cycle_vie.py -v
"""

from datetime import datetime, timezone

import pytest

from fraudops.services.cycle_metrics import calculate_metrics, loss_ratio
from fraudops.services.cycle_vie import CycleVieService
from fraudops.services.errors import NotFoundError, ValidationError


# ═══════════════════════════════════════════════════════════════
# 1. UNIT: métriques
# ═══════════════════════════════════════════════════════════════

class TestMetrics:
    CYCLE = {
        "created_at": "2024-01-01T00:00:00+00:00",
        "current_stage": "sinistre_paiement",
        "souscription": {"prime_initiale": 500},
        "vie_contrat": {"modifications": [{"type": "adresse"}]},
        "sinistre_paiement": {
            "sinistres": [{"id": "S1", "montant_indemnise": 600}],
            "paiements": [
                {"type": "prime", "montant": 250, "statut": "completed"},
                {"type": "prime", "montant": 999, "statut": "pending"},
                {"type": "indemnisation", "montant": 600},
            ],
        },
        "stage_history": [
            {"stage": "vie_contrat", "entered_at": "2024-01-01T00:00:00+00:00",
             "exited_at": "2024-01-21T00:00:00+00:00", "duration": 20},
            {"stage": "sinistre_paiement", "entered_at": "2024-01-21T00:00:00+00:00", "exited_at": None},
        ],
    }

    def test_durations(self):
        metrics = calculate_metrics(self.CYCLE, datetime(2024, 1, 31, 12, tzinfo=timezone.utc))
        assert metrics["duree_etape_actuelle"] == 10
        assert metrics["duree_totale"] == 30

    def test_amounts_and_ratio(self):
        metrics = calculate_metrics(self.CYCLE, datetime(2024, 1, 31, tzinfo=timezone.utc))
        assert metrics["montant_total_primes"] == 750
        assert metrics["montant_total_indemnisations"] == 600
        assert metrics["ratio_sinistralite"] == 80.0
        assert metrics["nombre_sinistres"] == 1
        assert metrics["nombre_modifications"] == 1

    def test_ratio_without_premiums(self):
        assert loss_ratio(0, 1200) == 0


# ═══════════════════════════════════════════════════════════════
# 2. SERVICE
# ═══════════════════════════════════════════════════════════════

class TestCycleVieService:
    async def test_create_initial_state(self, stores):
        cycle = await CycleVieService(stores).create_cycle_vie(
            {"assure_id": "ASSURE-0042", "contract_id": "CONT-42", "souscription": {"prime_initiale": 820}},
            "agent.souscription",
        )
        assert cycle["id"].startswith("CYCLE-")
        assert cycle["current_stage"] == "souscription"
        assert cycle["status"] == "active"
        assert cycle["progression"] == 10
        assert cycle["validation_requise"] is True
        assert cycle["metriques"]["montant_total_primes"] == 820
        assert len(cycle["stage_history"]) == 1
        assert cycle["stage_history"][0]["triggered_by"] == "manual_creation"

    async def test_create_requires_ids(self, stores):
        with pytest.raises(ValidationError):
            await CycleVieService(stores).create_cycle_vie({"assure_id": "", "contract_id": "C"})

    async def test_update_links_and_payload(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="sinistre_paiement")
        service = CycleVieService(stores)
        updated = await service.update_cycle_vie(cycle["id"], {
            "add_demande": "DEM-1",
            "sinistre_paiement": {"sinistres": [{"id": "S1", "montant_indemnise": 300}]},
        })
        assert updated["demande_ids"] == ["DEM-1"]
        assert updated["metriques"]["nombre_sinistres"] == 1

        again = await service.update_cycle_vie(cycle["id"], {"add_demande": "DEM-1"})
        assert again["demande_ids"] == ["DEM-1"]

    async def test_update_stage_goes_through_engine(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="vie_contrat")
        updated = await CycleVieService(stores).update_cycle_vie(
            cycle["id"], {"new_stage": "sinistre_paiement", "context": {"sinistre_declared": True}}
        )
        assert updated["current_stage"] == "sinistre_paiement"
        assert await stores.transitions.count({"cycle_vie_id": cycle["id"]}) == 1

    async def test_future_stage_payload_rejected(self, stores):
        service = CycleVieService(stores)
        cycle = await service.create_cycle_vie({"assure_id": "ASSURE-0007", "contract_id": "CONT-7"})
        with pytest.raises(ValidationError):
            await service.update_cycle_vie(cycle["id"], {
                "resiliation": {"motif": "changement_assureur"},
                "sinistre_paiement": {"sinistres": [{"id": "S1", "montant_indemnise": 300}]},
            })
        unchanged = await stores.cycle_vies.get(cycle["id"])
        assert unchanged["resiliation"] is None
        assert unchanged["metriques"]["nombre_sinistres"] == 0

    async def test_payload_allowed_for_stage_being_entered(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="vie_contrat")
        updated = await CycleVieService(stores).update_cycle_vie(cycle["id"], {
            "new_stage": "sinistre_paiement",
            "context": {"sinistre_declared": True},
            "sinistre_paiement": {"sinistres": [{"id": "S1", "montant_indemnise": 300}]},
            "souscription": {"prime_initiale": 500},
        })
        assert updated["current_stage"] == "sinistre_paiement"
        assert updated["metriques"]["nombre_sinistres"] == 1

    async def test_terminal_cycle_cannot_be_reactivated(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="resiliation", status="completed")
        service = CycleVieService(stores)
        with pytest.raises(ValidationError):
            await service.update_cycle_vie(cycle["id"], {"new_status": "active"})
        assert (await stores.cycle_vies.get(cycle["id"]))["status"] == "completed"

        suspended = await service.update_cycle_vie(cycle["id"], {"new_status": "suspended"})
        assert suspended["status"] == "suspended"

    async def test_update_unknown(self, stores):
        with pytest.raises(NotFoundError):
            await CycleVieService(stores).update_cycle_vie("CYCLE-NOPE", {"new_status": "suspended"})


# ═══════════════════════════════════════════════════════════════
# 3. PRÉDICTION
# ═══════════════════════════════════════════════════════════════

class TestPrediction:
    async def test_prediction_follows_canonical_order(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="vie_contrat", documents_manquants=["rib"])
        prediction = await CycleVieService(stores).generate_prediction(cycle["id"])
        assert prediction["predicted_next_stage"] == "sinistre_paiement"
        assert prediction["estimated_days"] == 1
        assert prediction["confidence"] == 0.7
        assert "Documents manquants" in prediction["risk_factors"]
        assert "Compléter les documents manquants" in prediction["recommendations"]

    async def test_prediction_is_deterministic(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="souscription")
        service = CycleVieService(stores)
        first = await service.generate_prediction(cycle["id"])
        second = await service.generate_prediction(cycle["id"])
        assert first["confidence"] == second["confidence"] == 0.85
        assert first["predicted_next_stage"] == second["predicted_next_stage"] == "vie_contrat"

    async def test_terminal_stage_stays_terminal(self, stores, insert_cycle):
        cycle = await insert_cycle(stage="resiliation", status="completed")
        prediction = await CycleVieService(stores).generate_prediction(cycle["id"])
        assert prediction["predicted_next_stage"] == "resiliation"
        assert prediction["estimated_days"] == 30
