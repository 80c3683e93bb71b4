"""
FraudOps - Entity stores & filtres
Tests: create/update/remove, filtres typés ($in, égalité, intervalle), erreurs.
Run: pytest fraudops/tests/test_stores_filters.py -v
"""

import pytest

from fraudops.services.errors import ValidationError
from fraudops.services.filters import AlertFilters, CaseFilters, DemandeFilters


def _demande(**extra):
    doc = {
        "type": "reclamation",
        "category": "service_client",
        "status": "received",
        "priority": "medium",
        "channel": "email",
        "origin": "client",
        "objet": "Réclamation sur délai",
        "description": "",
        "numero_suivi": "SUIVI-900001",
        "sla": {
            "date_reception": "2024-01-10T00:00:00+00:00",
            "delai_commercial": 7,
            "date_echeance": "2099-01-17T00:00:00+00:00",
            "date_traitement": None,
            "respect_sla": True,
        },
        "metadata": {"version": 1, "tags": ["reclamation"], "flags": []},
    }
    doc.update(extra)
    return doc


# ═══════════════════════════════════════════════════════════════
# 1. CRUD
# ═══════════════════════════════════════════════════════════════

class TestStoreCrud:
    async def test_create_assigns_id_and_timestamps(self, stores):
        doc = await stores.alerts.create({"type": "document_fraud", "status": "pending"})
        assert doc["id"].startswith("ALERT-")
        assert doc["created_at"] and doc["updated_at"]
        assert "_id" not in doc

        fetched = await stores.alerts.get(doc["id"])
        assert fetched["type"] == "document_fraud"
        assert "_id" not in fetched

    async def test_update_merges_metadata_one_level(self, stores):
        doc = await stores.alerts.create({"type": "x", "metadata": {"a": 1, "b": 2}})
        updated = await stores.alerts.update(doc["id"], {"metadata": {"b": 3, "c": 4}, "team": "fraude"})
        assert updated["metadata"] == {"a": 1, "b": 3, "c": 4}
        assert updated["team"] == "fraude"
        assert updated["created_at"] == doc["created_at"]

    async def test_update_unknown_id_returns_none(self, stores):
        assert await stores.alerts.update("ALERT-NOPE", {"team": "x"}) is None

    async def test_remove_only_on_removable_stores(self, stores):
        alert = await stores.alerts.create({"type": "x"})
        assert await stores.alerts.remove(alert["id"]) is True
        assert await stores.alerts.get(alert["id"]) is None
        assert await stores.alerts.remove(alert["id"]) is False

        assert not hasattr(stores.demandes, "remove")
        assert not hasattr(stores.cycle_vies, "remove")


# ═══════════════════════════════════════════════════════════════
# 2. FILTRES
# ═══════════════════════════════════════════════════════════════

class TestFilters:
    async def test_list_in_and_equality(self, stores):
        await stores.demandes.create(_demande(status="received", priority="urgent"))
        await stores.demandes.create(_demande(status="completed", priority="low"))
        await stores.demandes.create(_demande(status="escalated", priority="urgent"))

        result = await stores.demandes.list({"statuses": ["received", "escalated"]})
        assert len(result) == 2

        result = await stores.demandes.list(DemandeFilters(statuses=["received"], priorities=["urgent"]))
        assert len(result) == 1
        assert result[0]["status"] == "received"

    async def test_date_range_is_inclusive(self, stores):
        for day in ("05", "10", "15"):
            await stores.demandes.create(_demande(sla={
                "date_reception": f"2024-01-{day}T00:00:00+00:00",
                "date_echeance": "2099-01-01T00:00:00+00:00",
                "respect_sla": True,
            }))
        result = await stores.demandes.list({
            "date_reception_from": "2024-01-05T00:00:00Z",
            "date_reception_to": "2024-01-10T00:00:00Z",
        })
        assert len(result) == 2

    async def test_search_matches_objet(self, stores):
        await stores.demandes.create(_demande(objet="Contestation expertise"))
        await stores.demandes.create(_demande(objet="Changement adresse"))
        result = await stores.demandes.list({"search": "expertise"})
        assert [d["objet"] for d in result] == ["Contestation expertise"]

    async def test_count_matches_list(self, stores):
        await stores.alerts.create({"type": "a", "status": "pending", "severity": "high"})
        await stores.alerts.create({"type": "b", "status": "qualified", "severity": "high"})
        assert await stores.alerts.count({"severities": ["high"]}) == 2
        assert await stores.alerts.count(AlertFilters(statuses=["pending"])) == 1

    async def test_unknown_filter_key_rejected(self, stores):
        with pytest.raises(ValidationError):
            await stores.demandes.list({"colour": "red"})

    async def test_invalid_enum_value_rejected(self, stores):
        with pytest.raises(ValidationError):
            await stores.demandes.list({"statuses": ["not_a_status"]})

    async def test_filter_of_wrong_entity_rejected(self, stores):
        with pytest.raises(ValidationError):
            await stores.demandes.list(CaseFilters(statuses=["open"]))

    async def test_overdue_is_computed_on_read(self, stores):
        late = await stores.demandes.create(_demande(sla={
            "date_reception": "2024-01-01T00:00:00+00:00",
            "date_echeance": "2024-01-02T00:00:00+00:00",
            "date_traitement": None,
            "respect_sla": True,
        }))
        await stores.demandes.create(_demande())

        assert (await stores.demandes.get(late["id"]))["sla"]["respect_sla"] is False
        overdue = await stores.demandes.list_overdue()
        assert [d["id"] for d in overdue] == [late["id"]]
