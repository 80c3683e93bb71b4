"""
FraudOps - Conversion Demande → Historique

Un historique est l'enregistrement archivé et immuable d'une demande traitée.
create_from_demande() retourne l'identifiant opaque de l'historique créé.
"""

import logging
from typing import Optional, List, Dict, Any

from fraudops.config import now_iso, generate_id
from fraudops.models import Historique

logger = logging.getLogger("historique")

EVENT_TYPE_BY_DEMANDE_TYPE = {
    "souscription_contrat": "souscription_contrat",
    "modification_contrat": "modification_contrat",
    "declaration_sinistre": "declaration_sinistre",
    "reclamation": "reclamation_client",
    "demande_info": "contact_client",
    "changement_coordonnees": "modification_profil",
}

CATEGORY_BY_DEMANDE_CATEGORY = {
    "commercial": "commercial",
    "operationnel": "operationnel",
    "sinistre": "sinistre",
    "service_client": "relation_client",
    "compliance": "compliance",
    "technique": "technique",
}

SOURCE_BY_CHANNEL = {
    "web_portal": "user_action",
    "mobile_app": "user_action",
    "phone": "user_action",
    "email": "user_action",
    "api": "external_api",
    "webhook": "webhook",
    "system_automatic": "system_automatic",
}

HIGH_AMOUNT_THRESHOLD = 5000


def _first(values: Optional[List[str]]) -> Optional[str]:
    return values[0] if values else None


def impact_from_demande(demande: Dict[str, Any]) -> str:
    priority = demande.get("priority")
    if priority in ("critical", "urgent"):
        return "critical"
    if priority == "high":
        return "high"
    montant = demande.get("contexte", {}).get("montant_concerne")
    if montant and montant > HIGH_AMOUNT_THRESHOLD:
        return "high"
    if demande.get("qualite", {}).get("erreurs"):
        return "medium"
    return "low"


def line_of_business(demande_type: str) -> str:
    if "sinistre" in demande_type:
        return "Auto"
    if "contrat" in demande_type:
        return "Multirisque"
    return "General"


class HistoriqueService:

    def __init__(self, stores):
        self.stores = stores

    def build_from_demande(self, demande: Dict[str, Any]) -> Dict[str, Any]:
        now = now_iso()
        contexte = demande.get("contexte", {})
        relations = demande.get("relations", {})
        traitement = demande.get("traitement", {})
        demande_type = demande["type"]

        historique = Historique(
            id=generate_id("HIST"),
            assure_id=relations.get("assure_id") or "unknown",
            cycle_vie_id=_first(relations.get("cycle_vie_ids")),
            demande_id=demande["id"],
            event_type=EVENT_TYPE_BY_DEMANDE_TYPE.get(demande_type, "system_event"),
            category=CATEGORY_BY_DEMANDE_CATEGORY.get(demande.get("category"), "operationnel"),
            source=SOURCE_BY_CHANNEL.get(demande.get("channel"), "user_action"),
            impact=impact_from_demande(demande),
            title=f"{demande.get('objet', '')} - Demande traitée",
            description=f'Demande de type "{demande_type}" traitée avec succès. {demande.get("description", "")}'.strip(),
            short_summary=f"Demande {demande_type} traitée",
            business_context={
                "contract_id": _first(contexte.get("contrat_ids")),
                "policy_number": _first(contexte.get("policy_numbers")),
                "sinistre_number": contexte.get("sinistre_number"),
                "amount": contexte.get("montant_concerne"),
                "currency": "EUR",
                "line_of_business": line_of_business(demande_type),
            },
            triggered_by=demande.get("last_modified_by") or "system",
            triggered_by_role=traitement.get("equipe_traitante"),
            related_entities={
                "demande_ids": [demande["id"]],
                "contract_ids": list(contexte.get("contrat_ids") or []),
            },
            metadata={
                "operational": {
                    "process_id": demande.get("workflow", {}).get("etape_actuelle"),
                    "duration": demande.get("qualite", {}).get("temps_traitement", 0),
                    "automation_level": "full_auto" if demande.get("channel") == "api" else "manual",
                },
                "original_demande": {
                    "numero_suivi": demande.get("numero_suivi"),
                    "priority": demande.get("priority"),
                    "sla_respected": demande.get("sla", {}).get("respect_sla"),
                },
            },
            status="completed",
            requires_action=False,
            completed_at=now,
            created_at=now,
        )
        return historique.model_dump()

    async def create_from_demande(self, demande: Dict[str, Any]) -> str:
        historique = await self.stores.historiques.create(self.build_from_demande(demande))
        logger.info(f"[HISTORIQUE] {historique['id']} créé depuis demande {demande['id']}")
        return historique["id"]

    async def get(self, historique_id: str) -> Optional[Dict[str, Any]]:
        return await self.stores.historiques.get(historique_id)
