"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FraudOps - Anomaly Detector (cycles de vie actifs)                          ║
║                                                                              ║
║  Vérifications indépendantes, cumulables sur un même cycle:                  ║
║  - stagnation           duree_etape_actuelle > STAGNATION_DAYS     medium    ║
║  - rapid_progression    duree_etape_actuelle < RAPID_PROGRESSION_DAYS        ║
║                         hors souscription                          low       ║
║  - document_missing     documents_manquants non vide               medium    ║
║  - validation_required  validation_requise                         high      ║
║                                                                              ║
║  DÉDOUBLONNAGE: une seule alerte non résolue par (cycle_vie_id, type).       ║
║  Une alerte résolue libère la clé: un balayage suivant peut la réémettre.   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import List, Dict, Any

from fraudops.config import now_iso, generate_id, STAGNATION_DAYS, RAPID_PROGRESSION_DAYS
from fraudops.models import CycleVieAlert
from fraudops.services.cycle_metrics import calculate_metrics
from fraudops.services.errors import NotFoundError
from fraudops.services.event_logger import log_event

logger = logging.getLogger("anomaly_detector")


class AnomalyDetector:

    def __init__(self, stores, stagnation_days: int = STAGNATION_DAYS,
                 rapid_progression_days: int = RAPID_PROGRESSION_DAYS):
        self.stores = stores
        self.stagnation_days = stagnation_days
        self.rapid_progression_days = rapid_progression_days

    def evaluate(self, cycle: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Constats bruts pour un cycle, sans écriture"""
        stage = cycle["current_stage"]
        duration = cycle.get("metriques", {}).get("duree_etape_actuelle", 0)
        documents = cycle.get("documents_manquants") or []
        findings = []

        if duration > self.stagnation_days:
            findings.append({
                "type": "stagnation",
                "severity": "medium",
                "message": f"Cycle bloqué en étape {stage} depuis {duration} jours",
                "details": {"stage": stage, "duration": duration},
            })

        if duration < self.rapid_progression_days and stage != "souscription":
            findings.append({
                "type": "rapid_progression",
                "severity": "low",
                "message": "Progression rapide détectée - étape changée en moins d'un jour",
                "details": {"stage": stage, "duration": duration},
            })

        if documents:
            findings.append({
                "type": "document_missing",
                "severity": "medium",
                "message": f"{len(documents)} document(s) manquant(s)",
                "details": {"documents": list(documents)},
            })

        if cycle.get("validation_requise"):
            findings.append({
                "type": "validation_required",
                "severity": "high",
                "message": f"Validation manuelle requise pour étape {stage}",
                "details": {"stage": stage, "actions": cycle.get("actions_pendantes", [])},
            })

        return findings

    async def detect_anomalies(self, refresh_metrics: bool = False) -> List[Dict[str, Any]]:
        """
        Balaye les cycles actifs et retourne les alertes correspondantes.

        Une alerte ouverte existante pour la même clé est retournée telle
        quelle au lieu d'être dupliquée. Avec refresh_metrics, les métriques
        sont recalculées et persistées avant les vérifications.
        """
        alerts = []
        created_count = 0
        cycles = await self.stores.cycle_vies.list({"statuses": ["active"]})

        for cycle in cycles:
            if refresh_metrics:
                cycle = await self.stores.cycle_vies.update(
                    cycle["id"], {"metriques": calculate_metrics(cycle)}
                )

            for finding in self.evaluate(cycle):
                existing = await self.stores.cycle_alerts.find_open(cycle["id"], finding["type"])
                if existing:
                    alerts.append(existing)
                    continue

                alert = CycleVieAlert(
                    id=generate_id("CALERT"),
                    cycle_vie_id=cycle["id"],
                    created_at=now_iso(),
                    **finding
                ).model_dump(mode="json")
                alert = await self.stores.cycle_alerts.create(alert)
                await self.stores.cycle_vies.apply(cycle["id"], {"$addToSet": {"alerte_ids": alert["id"]}})

                await log_event(
                    self.stores.db,
                    action="anomaly_detected",
                    entity_type="cycle_alert",
                    entity_id=alert["id"],
                    details={"type": alert["type"], "severity": alert["severity"]},
                    related={"cycle_vie_id": cycle["id"]},
                )
                alerts.append(alert)
                created_count += 1

        logger.info(
            f"[ANOMALY] Balayage: {len(cycles)} cycles actifs, "
            f"{len(alerts)} alertes ({created_count} nouvelles)"
        )
        return alerts

    async def acknowledge_alert(self, alert_id: str, user: str = "system") -> Dict[str, Any]:
        alert = await self.stores.cycle_alerts.get(alert_id)
        if not alert:
            raise NotFoundError("CycleVieAlert", alert_id)
        if alert.get("acknowledged_at"):
            return alert

        alert = await self.stores.cycle_alerts.update(alert_id, {
            "acknowledged_by": user,
            "acknowledged_at": now_iso(),
        })
        await log_event(
            self.stores.db, "anomaly_acknowledged", "cycle_alert", alert_id, user,
            related={"cycle_vie_id": alert["cycle_vie_id"]},
        )
        logger.info(f"[ANOMALY] {alert_id} prise en compte par {user}")
        return alert

    async def resolve_alert(self, alert_id: str, user: str = "system") -> Dict[str, Any]:
        alert = await self.stores.cycle_alerts.get(alert_id)
        if not alert:
            raise NotFoundError("CycleVieAlert", alert_id)
        if alert.get("resolved_at"):
            return alert

        timestamp = now_iso()
        changes = {"resolved_by": user, "resolved_at": timestamp}
        if not alert.get("acknowledged_at"):
            changes.update({"acknowledged_by": user, "acknowledged_at": timestamp})

        alert = await self.stores.cycle_alerts.update(alert_id, changes)
        await log_event(
            self.stores.db, "anomaly_resolved", "cycle_alert", alert_id, user,
            related={"cycle_vie_id": alert["cycle_vie_id"]},
        )
        logger.info(f"[ANOMALY] {alert_id} résolue par {user}")
        return alert
