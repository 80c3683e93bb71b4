"""
FraudOps - Service CycleVie

Création, mise à jour et prédiction d'un cycle de vie contrat.
Tout changement d'étape passe par StageTransitionEngine.
"""

import logging
from datetime import timedelta
from typing import Optional, List, Dict, Any, Union
from pydantic import ValidationError as PydanticValidationError

from fraudops.config import now
from fraudops.models import (
    CycleVieCreate, CycleVieUpdate, SouscriptionData, STAGE_PROGRESSION,
    DEFAULT_PENDING_ACTIONS, Metriques, STAGE_ORDER, TERMINAL_STAGES,
)
from fraudops.services.cycle_metrics import calculate_metrics
from fraudops.services.errors import ValidationError, NotFoundError
from fraudops.services.transition_engine import StageTransitionEngine, next_canonical_stage

logger = logging.getLogger("cycle_vie")

# Champ CycleVieUpdate → liste d'IDs liés
RELATED_ID_FIELDS = {
    "add_historique": "historique_ids",
    "add_risque": "risque_ids",
    "add_demande": "demande_ids",
    "add_alerte": "alerte_ids",
    "add_dossier": "dossier_ids",
}

STAGE_PAYLOADS = ("souscription", "vie_contrat", "sinistre_paiement", "resiliation")

# Confiance de prédiction par étape courante (pas d'aléatoire)
PREDICTION_CONFIDENCE = {
    "souscription": 0.85,
    "vie_contrat": 0.7,
    "sinistre_paiement": 0.75,
    "resiliation": 0.9,
}


def _validate(model_cls, payload):
    if isinstance(payload, model_cls):
        return payload
    try:
        return model_cls.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(f"{model_cls.__name__} invalide: {e.errors()}") from e


def identify_risk_factors(cycle: Dict[str, Any]) -> List[str]:
    metriques = cycle.get("metriques", {})
    factors = []
    if metriques.get("nombre_sinistres", 0) > 2:
        factors.append("Fréquence élevée de sinistres")
    if metriques.get("ratio_sinistralite", 0) > 100:
        factors.append("Ratio sinistralité défavorable")
    if cycle.get("risque_ids"):
        factors.append("Risques détectés")
    if cycle.get("documents_manquants"):
        factors.append("Documents manquants")
    return factors


def generate_recommendations(cycle: Dict[str, Any]) -> List[str]:
    recommendations = []
    if cycle.get("validation_requise"):
        recommendations.append("Valider les étapes en attente")
    if cycle.get("documents_manquants"):
        recommendations.append("Compléter les documents manquants")
    if cycle.get("metriques", {}).get("ratio_sinistralite", 0) > 80:
        recommendations.append("Revoir les conditions tarifaires")
    return recommendations


class CycleVieService:

    def __init__(self, stores, engine: StageTransitionEngine = None):
        self.stores = stores
        self.engine = engine or StageTransitionEngine(stores)

    async def create_cycle_vie(self, request: Union[CycleVieCreate, Dict[str, Any]], user: str = "system") -> Dict[str, Any]:
        request = _validate(CycleVieCreate, request)
        if not request.assure_id.strip() or not request.contract_id.strip():
            raise ValidationError("assure_id et contract_id sont requis")

        stage = request.model_dump(mode="json")["initial_stage"]
        timestamp = now().isoformat()

        souscription = None
        if request.souscription is not None:
            souscription = _validate(
                SouscriptionData, {"date_debut": timestamp, **request.souscription}
            ).model_dump()

        cycle = {
            "assure_id": request.assure_id,
            "contract_id": request.contract_id,
            "current_stage": stage,
            "status": "active",
            "progression": STAGE_PROGRESSION[stage],
            "souscription": souscription,
            "vie_contrat": None,
            "sinistre_paiement": None,
            "resiliation": None,
            "metriques": Metriques().model_dump(),
            "historique_ids": [],
            "risque_ids": [],
            "demande_ids": [],
            "alerte_ids": [],
            "dossier_ids": [],
            "validation_requise": stage == "souscription",
            "prochaine_milestone": None,
            "actions_pendantes": list(DEFAULT_PENDING_ACTIONS[stage]),
            "documents_manquants": list(request.documents_manquants),
            "metadata": request.metadata,
            "created_at": timestamp,
            "created_by": user,
            "last_activity_at": timestamp,
            "stage_history": [{
                "stage": stage,
                "entered_at": timestamp,
                "exited_at": None,
                "duration": None,
                "triggered_by": "manual_creation",
            }],
        }
        if souscription:
            cycle["metriques"] = calculate_metrics(cycle)

        created = await self.stores.cycle_vies.create(cycle)
        logger.info(f"[CYCLE] {created['id']} créé pour assuré {request.assure_id} (étape {stage})")
        return created

    async def get_cycle_vie(self, cycle_vie_id: str) -> Optional[Dict[str, Any]]:
        return await self.stores.cycle_vies.get(cycle_vie_id)

    async def update_cycle_vie(
        self,
        cycle_vie_id: str,
        request: Union[CycleVieUpdate, Dict[str, Any]],
        user: str = "system"
    ) -> Dict[str, Any]:
        request = _validate(CycleVieUpdate, request)
        data = request.model_dump(mode="json", exclude_none=True)

        cycle = await self.stores.cycle_vies.get(cycle_vie_id)
        if not cycle:
            raise NotFoundError("CycleVie", cycle_vie_id)

        # Étape visée après l'éventuelle transition
        stage = data.get("new_stage", cycle["current_stage"])
        ahead = [p for p in STAGE_PAYLOADS if p in data and STAGE_ORDER.index(p) > STAGE_ORDER.index(stage)]
        if ahead:
            raise ValidationError(f"Données d'étape future refusées (étape {stage}): {ahead}")
        if data.get("new_status") == "active" and stage in TERMINAL_STAGES:
            raise ValidationError(f"Un cycle en étape terminale '{stage}' ne peut pas être réactivé")

        if "new_stage" in data:
            outcome = await self.engine.transition(
                cycle_vie_id, data["new_stage"], user, context=request.context
            )
            cycle = outcome.cycle

        changes: Dict[str, Any] = {}
        if "new_status" in data:
            changes["status"] = data["new_status"]
        for payload in STAGE_PAYLOADS:
            if payload in data:
                changes[payload] = {**(cycle.get(payload) or {}), **data[payload]}
        for field, target in RELATED_ID_FIELDS.items():
            if field in data and data[field] not in cycle.get(target, []):
                changes[target] = cycle.get(target, []) + [data[field]]
        if "documents_manquants" in data:
            changes["documents_manquants"] = data["documents_manquants"]

        changes["last_activity_at"] = now().isoformat()
        changes["metriques"] = calculate_metrics({**cycle, **changes})

        updated = await self.stores.cycle_vies.update(cycle_vie_id, changes)
        logger.info(f"[CYCLE] {cycle_vie_id} mis à jour | {sorted(data)}")
        return updated

    async def refresh_metrics(self, cycle_vie_id: str) -> Dict[str, Any]:
        cycle = await self.stores.cycle_vies.get(cycle_vie_id)
        if not cycle:
            raise NotFoundError("CycleVie", cycle_vie_id)
        return await self.stores.cycle_vies.update(cycle_vie_id, {"metriques": calculate_metrics(cycle)})

    async def generate_prediction(self, cycle_vie_id: str) -> Dict[str, Any]:
        cycle = await self.stores.cycle_vies.get(cycle_vie_id)
        if not cycle:
            raise NotFoundError("CycleVie", cycle_vie_id)

        current = cycle["current_stage"]
        predicted = next_canonical_stage(current)
        estimated_days = self.engine.estimated_duration(current, predicted)
        metriques = cycle.get("metriques", {})

        return {
            "cycle_vie_id": cycle_vie_id,
            "predicted_next_stage": predicted,
            "estimated_transition_date": (now() + timedelta(days=estimated_days)).isoformat(),
            "estimated_days": estimated_days,
            "confidence": PREDICTION_CONFIDENCE.get(current, 0.7),
            "risk_factors": identify_risk_factors(cycle),
            "recommendations": generate_recommendations(cycle),
            "business_impact": {
                "revenue_impact": metriques.get("montant_total_primes", 0) - metriques.get("montant_total_indemnisations", 0),
                "risk_score": len(cycle.get("risque_ids", [])) * 20,
                "priority": "high" if cycle.get("alerte_ids") else "medium",
            },
        }
