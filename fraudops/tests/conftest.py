"""
FraudOps - Fixtures de test
Base MongoDB en mémoire (mongomock-motor), une base neuve par test.
"""

import uuid
import pytest
from mongomock_motor import AsyncMongoMockClient

from fraudops.services.stores import Stores


@pytest.fixture
def db():
    return AsyncMongoMockClient()[f"fraudops_test_{uuid.uuid4().hex[:8]}"]


@pytest.fixture
def stores(db):
    return Stores(db)


@pytest.fixture
def demande_payload():
    """Fabrique de payload DemandeCreate valide"""
    def _make(**overrides):
        payload = {
            "type": "declaration_sinistre",
            "category": "sinistre",
            "priority": "medium",
            "origin": "client",
            "channel": "web_portal",
            "demandeur": {
                "assure_id": "ASSURE-0001",
                "identite": {"nom": "Martin", "prenom": "Claire", "email": "c.martin@example.fr"},
                "authentifie": True,
            },
            "objet": "Sinistre collision parking",
            "description": "Choc arrière sur parking de supermarché",
        }
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture
def insert_cycle(stores):
    """Insère directement un cycle de vie (métriques choisies par le test)"""
    async def _insert(stage="vie_contrat", status="active", duree_etape=10,
                      documents_manquants=None, validation_requise=False, **extra):
        doc = {
            "assure_id": "ASSURE-0001",
            "contract_id": "CONT-1",
            "current_stage": stage,
            "status": status,
            "progression": 40,
            "metriques": {"duree_etape_actuelle": duree_etape, "duree_totale": duree_etape},
            "historique_ids": [],
            "risque_ids": [],
            "demande_ids": [],
            "alerte_ids": [],
            "dossier_ids": [],
            "validation_requise": validation_requise,
            "actions_pendantes": [],
            "documents_manquants": documents_manquants or [],
            "stage_history": [{
                "stage": stage,
                "entered_at": "2024-01-01T00:00:00+00:00",
                "exited_at": None,
                "duration": None,
                "triggered_by": "test",
            }],
        }
        doc.update(extra)
        return await stores.cycle_vies.create(doc)
    return _insert
