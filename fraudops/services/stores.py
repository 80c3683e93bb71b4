"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FraudOps - Entity Stores                                                    ║
║                                                                              ║
║  Un store par collection, construit UNE fois à partir d'un handle DB et      ║
║  passé explicitement aux services (pas d'état global partagé).               ║
║                                                                              ║
║  Interface commune:                                                          ║
║  - list(filters) / count(filters) / get(id)                                  ║
║  - create(payload): id + created_at/updated_at posés par le store            ║
║  - update(id, partial): merge sur un niveau (metadata fusionné)              ║
║  - remove(id): UNIQUEMENT sur les stores qui l'autorisent                    ║
║    (jamais Demande / CycleVie: suppression = changement de statut)           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional, List, Dict, Any

from fraudops.config import now_iso, generate_id
from fraudops.services.filters import (
    MAX_LIST, StoreFilters, coerce_filters,
    DemandeFilters, CycleVieFilters, TransitionFilters, CycleAlertFilters,
    HistoriqueFilters, AlertFilters, CaseFilters,
)
from fraudops.services.sla import refresh_sla

logger = logging.getLogger("stores")


class EntityStore:
    collection_name = ""
    entity_type = ""
    id_prefix = "ID"
    filters_cls = StoreFilters
    default_sort = [("created_at", -1)]

    def __init__(self, db):
        self.db = db
        self.collection = db[self.collection_name]

    def _prepare(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        """Hook de lecture (valeurs calculées)"""
        return doc

    async def list(self, filters=None) -> List[Dict[str, Any]]:
        flt = coerce_filters(self.filters_cls, filters)
        query = flt.to_query()

        if flt.has_computed:
            # Critères calculés: filtrage en mémoire puis pagination
            docs = await self.collection.find(
                query, {"_id": 0}, sort=self.default_sort
            ).to_list(MAX_LIST)
            docs = [self._prepare(d) for d in docs]
            docs = [d for d in docs if flt.matches_computed(d)]
            return docs[flt.skip:flt.skip + flt.limit]

        docs = await self.collection.find(
            query, {"_id": 0}, sort=self.default_sort, skip=flt.skip, limit=flt.limit
        ).to_list(flt.limit)
        return [self._prepare(d) for d in docs]

    async def count(self, filters=None) -> int:
        flt = coerce_filters(self.filters_cls, filters)
        if flt.has_computed:
            flt = flt.model_copy(update={"skip": 0, "limit": MAX_LIST})
            return len(await self.list(flt))
        return await self.collection.count_documents(flt.to_query())

    async def all(self) -> List[Dict[str, Any]]:
        docs = await self.collection.find({}, {"_id": 0}).to_list(MAX_LIST)
        return [self._prepare(d) for d in docs]

    async def get(self, entity_id: str) -> Optional[Dict[str, Any]]:
        doc = await self.collection.find_one({"id": entity_id}, {"_id": 0})
        return self._prepare(doc) if doc else None

    async def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        now = now_iso()
        doc = dict(payload)
        if not doc.get("id"):
            doc["id"] = generate_id(self.id_prefix)
        doc.setdefault("created_at", now)
        doc["updated_at"] = now

        # insert_one ajoute _id au dict passé: on insère une copie
        await self.collection.insert_one(dict(doc))
        logger.debug(f"[STORE] {self.entity_type} {doc['id']} créé")
        return self._prepare(doc)

    async def update(self, entity_id: str, partial: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Merge superficiel: les dicts imbriqués sont fusionnés sur un niveau
        (ex: metadata), les autres valeurs remplacées.
        """
        existing = await self.collection.find_one({"id": entity_id}, {"_id": 0})
        if not existing:
            return None

        update_data = {}
        for key, value in partial.items():
            if key in ("id", "created_at"):
                continue
            current = existing.get(key)
            if isinstance(value, dict) and isinstance(current, dict):
                update_data[key] = {**current, **value}
            else:
                update_data[key] = value
        update_data["updated_at"] = now_iso()

        await self.collection.update_one({"id": entity_id}, {"$set": update_data})
        return await self.get(entity_id)

    async def apply(self, entity_id: str, operations: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Applique des opérateurs Mongo bruts ($set, $push, $addToSet...)"""
        result = await self.collection.update_one({"id": entity_id}, operations)
        if result.matched_count == 0:
            return None
        return await self.get(entity_id)


class RemovableEntityStore(EntityStore):

    async def remove(self, entity_id: str) -> bool:
        result = await self.collection.delete_one({"id": entity_id})
        return result.deleted_count > 0


# ════════════════════════════════════════════════════════════════════════════
# STORES PAR ENTITÉ
# ════════════════════════════════════════════════════════════════════════════

class DemandeStore(EntityStore):
    collection_name = "demandes"
    entity_type = "demande"
    id_prefix = "DEM"
    filters_cls = DemandeFilters

    def _prepare(self, doc):
        return refresh_sla(doc)

    async def list_overdue(self) -> List[Dict[str, Any]]:
        return await self.list(DemandeFilters(en_retard=True))

    async def list_pending_validation(self) -> List[Dict[str, Any]]:
        return await self.list(DemandeFilters(statuses=["pending_validation"]))


class CycleVieStore(EntityStore):
    collection_name = "cycle_vies"
    entity_type = "cycle_vie"
    id_prefix = "CYCLE"
    filters_cls = CycleVieFilters
    default_sort = [("last_activity_at", -1)]

    async def list_for_assure(self, assure_id: str) -> List[Dict[str, Any]]:
        return await self.list(CycleVieFilters(assure_id=assure_id))


class TransitionStore(EntityStore):
    collection_name = "cycle_transitions"
    entity_type = "cycle_transition"
    id_prefix = "TRANS"
    filters_cls = TransitionFilters
    default_sort = [("timestamp", -1)]

    async def latest_for_cycle(self, cycle_vie_id: str) -> Optional[Dict[str, Any]]:
        docs = await self.list(TransitionFilters(cycle_vie_id=cycle_vie_id, limit=1))
        return docs[0] if docs else None


class CycleAlertStore(EntityStore):
    collection_name = "cycle_alerts"
    entity_type = "cycle_alert"
    id_prefix = "CALERT"
    filters_cls = CycleAlertFilters

    async def find_open(self, cycle_vie_id: str, alert_type: str) -> Optional[Dict[str, Any]]:
        """Alerte non résolue pour la clé (cycle_vie_id, type)"""
        return await self.collection.find_one(
            {"cycle_vie_id": cycle_vie_id, "type": alert_type, "resolved_at": None},
            {"_id": 0}
        )


class HistoriqueStore(EntityStore):
    collection_name = "historiques"
    entity_type = "historique"
    id_prefix = "HIST"
    filters_cls = HistoriqueFilters


class AlertStore(RemovableEntityStore):
    collection_name = "alerts"
    entity_type = "alert"
    id_prefix = "ALERT"
    filters_cls = AlertFilters


class CaseStore(RemovableEntityStore):
    collection_name = "cases"
    entity_type = "case"
    id_prefix = "CASE"
    filters_cls = CaseFilters


class Stores:
    """Conteneur des stores, construit au démarrage et injecté partout"""

    def __init__(self, db):
        self.db = db
        self.demandes = DemandeStore(db)
        self.cycle_vies = CycleVieStore(db)
        self.transitions = TransitionStore(db)
        self.cycle_alerts = CycleAlertStore(db)
        self.historiques = HistoriqueStore(db)
        self.alerts = AlertStore(db)
        self.cases = CaseStore(db)
