"""
FraudOps - Stats / KPI
Tests: collections vides, dimensions complètes, compteurs SLA, ROI dossiers.
Run: pytest fraudops/tests/test_stats.py -v
"""

from datetime import timedelta

from fraudops.config import now
from fraudops.services.demandes import DemandeService
from fraudops.services.stats import StatsService
from fraudops.services.workflow import WorkflowDispatcher


class TestEmptyStats:
    async def test_demandes_empty(self, stores):
        stats = await StatsService(stores).demande_stats()
        assert stats["total"] == 0
        assert stats["by_status"]["received"] == 0
        assert stats["by_priority"]["critical"] == 0
        assert stats["sla_metrics"]["taux_respect_sla"] == 0
        assert stats["sla_metrics"]["delai_moyen_traitement"] == 0

    async def test_cycles_empty(self, stores):
        stats = await StatsService(stores).cycle_vie_stats()
        assert stats["total"] == 0
        assert stats["by_stage"] == {
            "souscription": 0, "vie_contrat": 0, "sinistre_paiement": 0, "resiliation": 0,
        }
        assert stats["churn_rate"] == 0
        assert stats["anomalies"]["open_alerts"] == 0

    async def test_cases_and_alerts_empty(self, stores):
        service = StatsService(stores)
        assert (await service.case_stats())["financial_impact"]["net_roi"] == 0
        assert (await service.alert_stats())["by_status"]["pending"] == 0


class TestDemandeStats:
    async def test_counts_and_sla(self, stores, demande_payload):
        service = DemandeService(stores)
        await service.create_demande(demande_payload(priority="low"))
        due_soon = await service.create_demande(demande_payload(
            priority="urgent", date_reception=(now() - timedelta(hours=12)).isoformat()
        ))
        late = await service.create_demande(demande_payload(
            type="reclamation", category="service_client",
            date_reception=(now() - timedelta(days=30)).isoformat(),
        ))
        await WorkflowDispatcher(stores).process_workflow(due_soon["id"], "approve")

        stats = await StatsService(stores).demande_stats()
        assert stats["total"] == 3
        assert stats["by_type"]["declaration_sinistre"] == 2
        assert stats["by_type"]["reclamation"] == 1
        assert stats["by_status"]["completed"] == 1
        assert stats["sla_metrics"]["en_retard"] == 1
        assert stats["sla_metrics"]["taux_respect_sla"] == 66.67
        assert stats["sla_metrics"]["a_echeance"] == 0
        assert stats["sla_metrics"]["delai_moyen_traitement"] > 0
        assert late["id"] != due_soon["id"]

    async def test_due_soon_counted(self, stores, demande_payload):
        await DemandeService(stores).create_demande(demande_payload(
            priority="urgent", date_reception=(now() - timedelta(hours=12)).isoformat()
        ))
        stats = await StatsService(stores).demande_stats()
        assert stats["sla_metrics"]["a_echeance"] == 1
        assert stats["sla_metrics"]["en_retard"] == 0

    async def test_satisfaction_without_note_ignored(self, stores, demande_payload):
        service = DemandeService(stores)
        rated = await service.create_demande(demande_payload())
        unrated = await service.create_demande(demande_payload())
        await stores.demandes.update(rated["id"], {"qualite": {"satisfaction": {"note": 4}}})
        await stores.demandes.update(unrated["id"], {"qualite": {"satisfaction": {"commentaire": "RAS"}}})

        stats = await StatsService(stores).demande_stats()
        assert stats["quality_metrics"]["satisfaction_moyenne"] == 4


class TestCycleStats:
    async def test_by_stage_and_alerts(self, stores, insert_cycle):
        await insert_cycle(stage="vie_contrat", duree_etape=120)
        await insert_cycle(stage="resiliation", status="completed")
        stats = await StatsService(stores).cycle_vie_stats()
        assert stats["by_stage"]["vie_contrat"] == 1
        assert stats["by_stage"]["resiliation"] == 1
        assert stats["by_status"]["completed"] == 1
        assert stats["churn_rate"] == 100
        assert stats["conversion_rates"]["souscription_to_active"] == 100
        assert stats["anomalies"]["stagnation"] == 1
