"""
Scheduler pour les tâches automatiques FraudOps
- Balayage des anomalies de cycle de vie (toutes les 6 heures par défaut)

Désactivé par défaut: ANOMALY_SWEEP_ENABLED=true pour l'activer.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from fraudops.config import ANOMALY_SWEEP_CRON_HOURS, SCHEDULER_TIMEZONE
from fraudops.services.anomaly_detector import AnomalyDetector

logger = logging.getLogger("scheduler")


class TaskScheduler:
    """Gestionnaire de tâches planifiées"""

    def __init__(self, stores, cron_hours: str = ANOMALY_SWEEP_CRON_HOURS,
                 timezone: str = SCHEDULER_TIMEZONE):
        self.stores = stores
        self.cron_hours = cron_hours
        self.scheduler = AsyncIOScheduler(timezone=timezone)

    def start(self):
        """Démarre le scheduler avec toutes les tâches"""
        self.scheduler.add_job(
            self.run_anomaly_sweep,
            CronTrigger(hour=self.cron_hours, minute=0),
            id="anomaly_sweep",
            name="Balayage anomalies cycles de vie",
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(f"Scheduler démarré (anomaly_sweep hour={self.cron_hours})")

    def stop(self):
        """Arrête le scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler arrêté")

    # ==================== TÂCHES PLANIFIÉES ====================

    async def run_anomaly_sweep(self):
        """Recalcule les métriques des cycles actifs puis détecte les anomalies"""
        try:
            alerts = await AnomalyDetector(self.stores).detect_anomalies(refresh_metrics=True)
            logger.info(f"[SCHEDULER] Balayage anomalies terminé: {len(alerts)} alertes ouvertes")
            return alerts
        except Exception as e:
            logger.error(f"[SCHEDULER] Erreur balayage anomalies: {str(e)}")
            return []
