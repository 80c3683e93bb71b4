"""
FraudOps - Calcul SLA des demandes

Fonctions pures: mêmes entrées → même échéance.
- délai de base par type (défaut 5 jours, y compris type inconnu)
- ajustement par priorité
- échéance = réception + délai commercial
- respect_sla évalué à la création, puis recalculé à chaque lecture
"""

from datetime import datetime, timedelta
from typing import NamedTuple, Optional, Dict, Any, Union

from fraudops.config import parse_iso, to_iso, now as utc_now
from fraudops.models import TERMINAL_DEMANDE_STATUSES

DEFAULT_BASE_DAYS = 5

BASE_DAYS_BY_TYPE = {
    "declaration_sinistre": 3,
    "reclamation": 7,
    "demande_info": 2,
}

DUE_SOON_HOURS = 24


class SlaResult(NamedTuple):
    delai_commercial: int
    date_echeance: datetime
    respect_sla: bool


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


def commercial_delay(demande_type, priority) -> int:
    """Délai commercial en jours pour un type et une priorité"""
    base = BASE_DAYS_BY_TYPE.get(_value(demande_type), DEFAULT_BASE_DAYS)
    priority = _value(priority)

    if priority in ("urgent", "critical"):
        return 1
    if priority == "high":
        return max(1, base // 2)
    if priority == "medium":
        return base
    if priority == "low":
        return base * 2
    return base


def compute_sla(demande_type, priority, received_at: Union[str, datetime],
                at: Optional[datetime] = None) -> SlaResult:
    """
    Calcule le bloc SLA d'une demande.

    respect_sla est évalué à `at` (maintenant par défaut): une réception
    antidatée dont l'échéance est passée est déjà hors SLA.
    """
    delai = commercial_delay(demande_type, priority)
    received = parse_iso(received_at)
    echeance = received + timedelta(days=delai)
    return SlaResult(delai_commercial=delai, date_echeance=echeance, respect_sla=(at or utc_now()) <= echeance)


def build_sla_block(demande_type, priority, received_at: Union[str, datetime],
                    at: Optional[datetime] = None) -> Dict[str, Any]:
    result = compute_sla(demande_type, priority, received_at, at)
    return {
        "date_reception": to_iso(received_at),
        "delai_commercial": result.delai_commercial,
        "date_echeance": result.date_echeance.isoformat(),
        "date_traitement": None,
        "respect_sla": result.respect_sla,
    }


def is_sla_respected(sla: Dict[str, Any], status: str, at: Optional[datetime] = None) -> bool:
    """
    - statut terminal avec date de traitement → traité avant l'échéance ?
    - sinon → l'échéance n'est pas encore dépassée ?
    """
    at = at or utc_now()
    echeance = parse_iso(sla.get("date_echeance"))
    if echeance is None:
        return True

    traitement = parse_iso(sla.get("date_traitement"))
    if _value(status) in TERMINAL_DEMANDE_STATUSES and traitement is not None:
        return traitement <= echeance
    return at <= echeance


def is_due_soon(sla: Dict[str, Any], status: str, at: Optional[datetime] = None,
                hours: int = DUE_SOON_HOURS) -> bool:
    """Non terminée, pas encore en retard, échéance dans les prochaines `hours` heures"""
    if _value(status) in TERMINAL_DEMANDE_STATUSES:
        return False
    at = at or utc_now()
    echeance = parse_iso(sla.get("date_echeance"))
    if echeance is None:
        return False
    return at <= echeance <= at + timedelta(hours=hours)


def refresh_sla(demande: Dict[str, Any], at: Optional[datetime] = None) -> Dict[str, Any]:
    """Recalcule respect_sla sur un document demande (modifié sur place)"""
    sla = demande.get("sla")
    if sla:
        sla["respect_sla"] = is_sla_respected(sla, demande.get("status", ""), at)
    return demande
