"""
FraudOps - Stats / KPI

Recalcul complet à chaque appel, sans cache.
Toutes les dimensions énumérées sont présentes (compteurs à zéro).
Collections vides → zéros, jamais de division par zéro.
"""

import logging
from typing import List, Dict, Any, Iterable

from fraudops.config import parse_iso, STAGNATION_DAYS, RAPID_PROGRESSION_DAYS
from fraudops.models import (
    DemandeType, DemandeCategory, DemandeStatus, DemandePriority, DemandeChannel,
    DemandeOrigin, CycleVieStage, CycleVieStatus, FraudAlertStatus, FraudAlertSeverity,
    CaseStatus, CasePriority, CaseDecision,
)
from fraudops.services.sla import is_due_soon

logger = logging.getLogger("stats")


def _pct(part: float, total: float) -> float:
    return round(part / total * 100, 2) if total else 0


def _avg(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0


def count_by(docs: Iterable[Dict[str, Any]], field: str, enum_cls) -> Dict[str, int]:
    counts = {member.value: 0 for member in enum_cls}
    for doc in docs:
        value = doc.get(field)
        if value is not None:
            counts[value] = counts.get(value, 0) + 1
    return counts


def treatment_days(demande: Dict[str, Any]) -> float:
    sla = demande.get("sla", {})
    received = parse_iso(sla.get("date_reception"))
    treated = parse_iso(sla.get("date_traitement"))
    return (treated - received).total_seconds() / 86400


class StatsService:

    def __init__(self, stores):
        self.stores = stores

    async def demande_stats(self) -> Dict[str, Any]:
        demandes = await self.stores.demandes.all()
        total = len(demandes)

        treated = [d for d in demandes if d.get("sla", {}).get("date_traitement")]
        satisfactions = [
            d["qualite"]["satisfaction"].get("note") for d in demandes
            if isinstance(d.get("qualite", {}).get("satisfaction"), dict)
        ]
        satisfactions = [note for note in satisfactions if note is not None]

        return {
            "total": total,
            "by_type": count_by(demandes, "type", DemandeType),
            "by_category": count_by(demandes, "category", DemandeCategory),
            "by_status": count_by(demandes, "status", DemandeStatus),
            "by_priority": count_by(demandes, "priority", DemandePriority),
            "by_channel": count_by(demandes, "channel", DemandeChannel),
            "by_origin": count_by(demandes, "origin", DemandeOrigin),
            "sla_metrics": {
                "taux_respect_sla": _pct(sum(1 for d in demandes if d["sla"].get("respect_sla")), total),
                "delai_moyen_traitement": _avg([treatment_days(d) for d in treated]),
                "en_retard": sum(1 for d in demandes if not d["sla"].get("respect_sla")),
                "a_echeance": sum(1 for d in demandes if is_due_soon(d["sla"], d["status"])),
            },
            "quality_metrics": {
                "satisfaction_moyenne": _avg(satisfactions),
                "taux_premier_contact": _pct(
                    sum(1 for d in demandes if d.get("qualite", {}).get("nombre_aller_retours", 0) == 0), total
                ),
                "taux_erreur": _pct(sum(1 for d in demandes if d.get("qualite", {}).get("erreurs")), total),
                "complexite_moyenne": _avg([d.get("qualite", {}).get("note_complexite", 0) for d in demandes]),
            },
            "business_metrics": {
                "valeur_totale": sum(d.get("contexte", {}).get("montant_concerne") or 0 for d in demandes),
                "cout_total_traitement": sum(d.get("metrics", {}).get("cout_traitement", 0) for d in demandes),
                "rentabilite_moyenne": _avg([d.get("metrics", {}).get("rentabilite", 0) for d in demandes]),
                "impact_chiffre_affaires": sum(d.get("metrics", {}).get("valeur_client", 0) for d in demandes),
            },
        }

    async def cycle_vie_stats(self) -> Dict[str, Any]:
        cycles = await self.stores.cycle_vies.all()
        total = len(cycles)
        completed = [c for c in cycles if c.get("status") == "completed"]
        metriques = [c.get("metriques", {}) for c in cycles]

        durations: Dict[str, List[float]] = {stage.value: [] for stage in CycleVieStage}
        for cycle in cycles:
            for entry in cycle.get("stage_history") or []:
                if entry.get("duration") is not None:
                    durations.setdefault(entry["stage"], []).append(entry["duration"])

        open_alerts = await self.stores.cycle_alerts.count({"unresolved": True})

        return {
            "total": total,
            "by_stage": count_by(cycles, "current_stage", CycleVieStage),
            "by_status": count_by(cycles, "status", CycleVieStatus),
            "average_duration_by_stage": {stage: _avg(values) for stage, values in durations.items()},
            "conversion_rates": {
                "souscription_to_active": _pct(
                    sum(1 for c in cycles if c.get("current_stage") != "souscription"), total
                ),
            },
            "average_lifetime_value": _avg([m.get("montant_total_primes", 0) for m in metriques]),
            "churn_rate": _pct(
                sum(1 for c in completed if c.get("current_stage") == "resiliation"), max(1, len(completed))
            ),
            "frequency_sinistres": _avg([m.get("nombre_sinistres", 0) for m in metriques]),
            "anomalies": {
                "transitions_rapides": sum(
                    1 for m in metriques if m.get("duree_etape_actuelle", 0) < RAPID_PROGRESSION_DAYS
                ),
                "stagnation": sum(1 for m in metriques if m.get("duree_etape_actuelle", 0) > STAGNATION_DAYS),
                "open_alerts": open_alerts,
            },
        }

    async def case_stats(self) -> Dict[str, Any]:
        cases = await self.stores.cases.all()
        recovered = sum(c.get("metrics", {}).get("recovered_amount", 0) for c in cases)
        prevented = sum(c.get("metrics", {}).get("prevented_amount", 0) for c in cases)
        costs = sum(c.get("metrics", {}).get("investigation_cost", 0) for c in cases)

        return {
            "total": len(cases),
            "by_status": count_by(cases, "status", CaseStatus),
            "by_priority": count_by(cases, "priority", CasePriority),
            "by_decision": count_by(cases, "decision", CaseDecision),
            "financial_impact": {
                "total_recovered": recovered,
                "total_prevented": prevented,
                "total_investigation_costs": costs,
                "net_roi": recovered + prevented - costs,
            },
        }

    async def alert_stats(self) -> Dict[str, Any]:
        alerts = await self.stores.alerts.all()
        return {
            "total": len(alerts),
            "by_status": count_by(alerts, "status", FraudAlertStatus),
            "by_severity": count_by(alerts, "severity", FraudAlertSeverity),
        }
