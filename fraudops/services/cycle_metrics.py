"""
FraudOps - Métriques d'un cycle de vie

Recalculées à chaque transition et mise à jour à partir de stage_history et
des données d'étape. Aucune écriture ici.
"""

from datetime import datetime
from typing import Optional, Dict, Any

from fraudops.config import days_between, now as utc_now


def open_history_entry(cycle: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Entrée de stage_history sans exited_at (l'étape courante)"""
    for entry in reversed(cycle.get("stage_history") or []):
        if not entry.get("exited_at"):
            return entry
    return None


def loss_ratio(primes: float, indemnisations: float) -> float:
    if not primes:
        return 0
    return round(indemnisations / primes * 100, 2)


def calculate_metrics(cycle: Dict[str, Any], at: Optional[datetime] = None) -> Dict[str, Any]:
    at = at or utc_now()
    current = open_history_entry(cycle)

    souscription = cycle.get("souscription") or {}
    vie_contrat = cycle.get("vie_contrat") or {}
    sinistre_paiement = cycle.get("sinistre_paiement") or {}
    sinistres = sinistre_paiement.get("sinistres") or []
    paiements = sinistre_paiement.get("paiements") or []

    primes = float(souscription.get("prime_initiale") or 0)
    primes += sum(
        float(p.get("montant") or 0) for p in paiements
        if p.get("type") == "prime" and p.get("statut", "completed") == "completed"
    )
    indemnisations = sum(float(s.get("montant_indemnise") or 0) for s in sinistres)

    return {
        "duree_etape_actuelle": days_between(current["entered_at"], at) if current else 0,
        "duree_totale": days_between(cycle.get("created_at"), at),
        "nombre_modifications": len(vie_contrat.get("modifications") or []),
        "nombre_sinistres": len(sinistres),
        "montant_total_primes": primes,
        "montant_total_indemnisations": indemnisations,
        "ratio_sinistralite": loss_ratio(primes, indemnisations),
    }
