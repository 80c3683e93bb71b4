"""
FraudOps - Filtres typés par entité

Chaque filtre est un modèle pydantic strict (clé inconnue = erreur).
Sémantique commune:
- liste  → "fait partie de"   ($in)
- scalaire → égalité
- paire *_from / *_to → intervalle inclusif sur une date ISO
Toutes les conditions sont combinées en ET logique.

Certains critères dépendent de valeurs calculées à la lecture (respect_sla,
en_retard, has_active_alerts): ils sont appliqués après la requête via
matches_computed().
"""

import re
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from fraudops.config import to_iso, now
from fraudops.models import (
    DemandeType, DemandeCategory, DemandeStatus, DemandePriority,
    DemandeChannel, DemandeOrigin, CycleVieStage, CycleVieStatus,
    CycleVieAlertType, AlertSeverity, FraudAlertStatus, FraudAlertSeverity,
    FraudAlertSource, CaseStatus, CasePriority, CaseDecision,
)
from fraudops.services.errors import ValidationError

MAX_LIST = 5000


def _in(query: Dict, field: str, values: Optional[List]):
    if values:
        query[field] = {"$in": list(values)}


def _range(query: Dict, field: str, start: Optional[str], end: Optional[str]):
    cond = {}
    if start:
        cond["$gte"] = to_iso(start)
    if end:
        cond["$lte"] = to_iso(end)
    if cond:
        query[field] = cond


def _search(query: Dict, fields: List[str], term: Optional[str]):
    if term:
        pattern = re.escape(term)
        query["$or"] = [{f: {"$regex": pattern, "$options": "i"}} for f in fields]


class StoreFilters(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    limit: int = MAX_LIST
    skip: int = 0

    def to_query(self) -> Dict[str, Any]:
        return {}

    def matches_computed(self, doc: Dict[str, Any]) -> bool:
        return True

    @property
    def has_computed(self) -> bool:
        return False


class DemandeFilters(StoreFilters):
    types: Optional[List[DemandeType]] = None
    categories: Optional[List[DemandeCategory]] = None
    statuses: Optional[List[DemandeStatus]] = None
    priorities: Optional[List[DemandePriority]] = None
    channels: Optional[List[DemandeChannel]] = None
    origins: Optional[List[DemandeOrigin]] = None

    date_reception_from: Optional[str] = None
    date_reception_to: Optional[str] = None
    date_echeance_from: Optional[str] = None
    date_echeance_to: Optional[str] = None

    assure_id: Optional[str] = None
    contrat_ids: Optional[List[str]] = None
    assigne_a: Optional[str] = None
    equipe_traitante: Optional[str] = None
    respect_sla: Optional[bool] = None
    en_retard: Optional[bool] = None

    montant_min: Optional[float] = None
    montant_max: Optional[float] = None

    search: Optional[str] = None
    tags: Optional[List[str]] = None
    archived: Optional[bool] = None

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        _in(query, "type", self.types)
        _in(query, "category", self.categories)
        _in(query, "status", self.statuses)
        _in(query, "priority", self.priorities)
        _in(query, "channel", self.channels)
        _in(query, "origin", self.origins)
        _range(query, "sla.date_reception", self.date_reception_from, self.date_reception_to)
        _range(query, "sla.date_echeance", self.date_echeance_from, self.date_echeance_to)
        if self.assure_id:
            query["relations.assure_id"] = self.assure_id
        _in(query, "contexte.contrat_ids", self.contrat_ids)
        if self.assigne_a:
            query["traitement.assigne_a"] = self.assigne_a
        if self.equipe_traitante:
            query["traitement.equipe_traitante"] = self.equipe_traitante
        montant = {}
        if self.montant_min is not None:
            montant["$gte"] = self.montant_min
        if self.montant_max is not None:
            montant["$lte"] = self.montant_max
        if montant:
            query["contexte.montant_concerne"] = montant
        _in(query, "metadata.tags", self.tags)
        if self.archived is not None:
            query["historique_id"] = {"$ne": None} if self.archived else None
        _search(query, ["objet", "description", "numero_suivi"], self.search)
        return query

    @property
    def has_computed(self) -> bool:
        return self.respect_sla is not None or self.en_retard is not None

    def matches_computed(self, doc: Dict[str, Any]) -> bool:
        sla = doc.get("sla", {})
        if self.respect_sla is not None and sla.get("respect_sla") != self.respect_sla:
            return False
        if self.en_retard is not None:
            late = not sla.get("respect_sla", True) or (
                sla.get("date_echeance", "") < now().isoformat()
                and doc.get("status") not in ("completed", "rejected", "cancelled")
            )
            if late != self.en_retard:
                return False
        return True


class CycleVieFilters(StoreFilters):
    stages: Optional[List[CycleVieStage]] = None
    statuses: Optional[List[CycleVieStatus]] = None
    assure_id: Optional[str] = None
    contract_id: Optional[str] = None

    created_from: Optional[str] = None
    created_to: Optional[str] = None
    last_activity_from: Optional[str] = None
    last_activity_to: Optional[str] = None

    min_duration: Optional[int] = None
    max_duration: Optional[int] = None
    min_sinistres: Optional[int] = None
    min_premium_amount: Optional[float] = None
    validation_required: Optional[bool] = None
    has_active_alerts: Optional[bool] = None

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        _in(query, "current_stage", self.stages)
        _in(query, "status", self.statuses)
        if self.assure_id:
            query["assure_id"] = self.assure_id
        if self.contract_id:
            query["contract_id"] = self.contract_id
        _range(query, "created_at", self.created_from, self.created_to)
        _range(query, "last_activity_at", self.last_activity_from, self.last_activity_to)
        duration = {}
        if self.min_duration is not None:
            duration["$gte"] = self.min_duration
        if self.max_duration is not None:
            duration["$lte"] = self.max_duration
        if duration:
            query["metriques.duree_totale"] = duration
        if self.min_sinistres is not None:
            query["metriques.nombre_sinistres"] = {"$gte": self.min_sinistres}
        if self.min_premium_amount is not None:
            query["metriques.montant_total_primes"] = {"$gte": self.min_premium_amount}
        if self.validation_required is not None:
            query["validation_requise"] = self.validation_required
        return query

    @property
    def has_computed(self) -> bool:
        return self.has_active_alerts is not None

    def matches_computed(self, doc: Dict[str, Any]) -> bool:
        if self.has_active_alerts is not None:
            return bool(doc.get("alerte_ids")) == self.has_active_alerts
        return True


class TransitionFilters(StoreFilters):
    cycle_vie_id: Optional[str] = None
    validation_required: Optional[bool] = None
    pending_validation: Optional[bool] = None

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if self.cycle_vie_id:
            query["cycle_vie_id"] = self.cycle_vie_id
        if self.validation_required is not None:
            query["validation_required"] = self.validation_required
        if self.pending_validation is not None:
            if self.pending_validation:
                query["validation_required"] = True
                query["validated_at"] = None
            else:
                query["validated_at"] = {"$ne": None}
        return query


class CycleAlertFilters(StoreFilters):
    cycle_vie_id: Optional[str] = None
    types: Optional[List[CycleVieAlertType]] = None
    severities: Optional[List[AlertSeverity]] = None
    unresolved: Optional[bool] = None

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if self.cycle_vie_id:
            query["cycle_vie_id"] = self.cycle_vie_id
        _in(query, "type", self.types)
        _in(query, "severity", self.severities)
        if self.unresolved is not None:
            query["resolved_at"] = None if self.unresolved else {"$ne": None}
        return query


class HistoriqueFilters(StoreFilters):
    assure_id: Optional[str] = None
    demande_id: Optional[str] = None
    cycle_vie_id: Optional[str] = None
    event_types: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    search: Optional[str] = None

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        for field in ("assure_id", "demande_id", "cycle_vie_id"):
            value = getattr(self, field)
            if value:
                query[field] = value
        _in(query, "event_type", self.event_types)
        _in(query, "category", self.categories)
        _search(query, ["title", "description"], self.search)
        return query


class AlertFilters(StoreFilters):
    statuses: Optional[List[FraudAlertStatus]] = None
    severities: Optional[List[FraudAlertSeverity]] = None
    sources: Optional[List[FraudAlertSource]] = None
    assigned_to: Optional[str] = None
    team: Optional[str] = None
    created_from: Optional[str] = None
    created_to: Optional[str] = None
    search: Optional[str] = None

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        _in(query, "status", self.statuses)
        _in(query, "severity", self.severities)
        _in(query, "source", self.sources)
        if self.assigned_to:
            query["assigned_to"] = self.assigned_to
        if self.team:
            query["team"] = self.team
        _range(query, "created_at", self.created_from, self.created_to)
        _search(query, ["id", "type", "metadata.insured_name", "metadata.policy_number"], self.search)
        return query


class CaseFilters(StoreFilters):
    statuses: Optional[List[CaseStatus]] = None
    priorities: Optional[List[CasePriority]] = None
    decisions: Optional[List[CaseDecision]] = None
    investigator: Optional[str] = None
    supervisor: Optional[str] = None
    created_from: Optional[str] = None
    created_to: Optional[str] = None
    tags: Optional[List[str]] = None
    search: Optional[str] = None

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        _in(query, "status", self.statuses)
        _in(query, "priority", self.priorities)
        _in(query, "decision", self.decisions)
        if self.investigator:
            query["investigator"] = self.investigator
        if self.supervisor:
            query["supervisor"] = self.supervisor
        _range(query, "created_at", self.created_from, self.created_to)
        _in(query, "tags", self.tags)
        _search(query, ["reference", "sinister_number", "insured_name"], self.search)
        return query


def coerce_filters(filters_cls, filters) -> StoreFilters:
    """Accepte un modèle de filtre, un dict ou None"""
    if filters is None:
        return filters_cls()
    if isinstance(filters, filters_cls):
        return filters
    if isinstance(filters, StoreFilters):
        raise ValidationError(
            f"Filtre {type(filters).__name__} incompatible avec {filters_cls.__name__}"
        )
    try:
        return filters_cls.model_validate(filters)
    except PydanticValidationError as e:
        raise ValidationError(f"Filtre invalide: {e.errors()}") from e
