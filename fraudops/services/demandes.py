"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FraudOps - Service Demande                                                  ║
║                                                                              ║
║  Création: validation → SLA → workflow → équipe → scores → règles auto       ║
║  Mise à jour: version +1, historique de versions en ajout seul               ║
║                                                                              ║
║  Une demande n'est JAMAIS supprimée (voir workflow.archive)                  ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional, List, Dict, Any, Union
from pydantic import ValidationError as PydanticValidationError

from fraudops.config import now_iso, to_iso, generate_id
from fraudops.models import DemandeCreate, DemandeUpdate, TERMINAL_DEMANDE_STATUSES
from fraudops.services.errors import ValidationError, NotFoundError
from fraudops.services.sla import build_sla_block, is_sla_respected

logger = logging.getLogger("demandes")


# ════════════════════════════════════════════════════════════════════════════
# RÉFÉRENTIELS
# ════════════════════════════════════════════════════════════════════════════

TEAM_BY_CATEGORY = {
    "commercial": "equipe_commerciale",
    "sinistre": "equipe_sinistres",
    "service_client": "service_client",
    "compliance": "equipe_compliance",
}
DEFAULT_TEAM = "gestion_generale"

# Durée de conservation (années)
RETENTION_YEARS = {
    "declaration_sinistre": 10,
    "souscription_contrat": 7,
    "reclamation": 3,
}
DEFAULT_RETENTION_YEARS = 5

# Règles appliquées à la création
DEMANDE_WORKFLOW_RULES = [
    {
        "id": "urgent-auto-assign",
        "name": "Assignation automatique urgent",
        "demande_types": ["declaration_sinistre", "reclamation"],
        "conditions": [{"field": "priority", "operator": "equals", "value": "urgent"}],
        "actions": [
            {"type": "assign", "target": "V. Dubois", "delay": 0},
            {"type": "escalate", "target": "superviseur", "delay": 5},
        ],
        "active": True,
    }
]


def default_team(category: str) -> str:
    return TEAM_BY_CATEGORY.get(category, DEFAULT_TEAM)


def urgency_score(priority: str, demande_type: str) -> int:
    score = 50
    if priority == "urgent":
        score += 40
    elif priority == "high":
        score += 25
    elif priority == "low":
        score -= 20

    if demande_type == "declaration_sinistre":
        score += 20
    elif demande_type == "reclamation":
        score += 15

    return min(100, max(0, score))


def retention_period(demande_type: str) -> int:
    return RETENTION_YEARS.get(demande_type, DEFAULT_RETENTION_YEARS)


def _matches_rule(demande: Dict[str, Any], rule: Dict[str, Any]) -> bool:
    if demande.get("type") not in rule["demande_types"]:
        return False
    for condition in rule["conditions"]:
        if condition["operator"] != "equals":
            return False
        if demande.get(condition["field"]) != condition["value"]:
            return False
    return True


def apply_workflow_rules(demande: Dict[str, Any], rules: List[Dict[str, Any]] = None) -> List[str]:
    """Applique les règles actives sur une demande (modifiée sur place)"""
    applied = []
    for rule in rules if rules is not None else DEMANDE_WORKFLOW_RULES:
        if not rule.get("active") or not _matches_rule(demande, rule):
            continue
        for action in rule["actions"]:
            if action["type"] == "assign":
                demande["traitement"]["assigne_a"] = action["target"]
            elif action["type"] == "escalate":
                demande["workflow"]["escalations"].append({
                    "declencheur": "rule_triggered",
                    "vers": action["target"],
                    "delai": action.get("delay", 0),
                    "automatique": True,
                })
        applied.append(rule["id"])
    return applied


class DemandeService:

    def __init__(self, stores):
        self.stores = stores

    async def _next_tracking_number(self) -> str:
        count = await self.stores.demandes.collection.count_documents({})
        return f"SUIVI-{900000 + count + 1:06d}"

    async def create_demande(self, payload: Union[DemandeCreate, Dict[str, Any]], user: str = "system") -> Dict[str, Any]:
        if not isinstance(payload, DemandeCreate):
            try:
                payload = DemandeCreate.model_validate(payload)
            except PydanticValidationError as e:
                raise ValidationError(f"Demande invalide: {e.errors()}") from e

        if not payload.objet.strip():
            raise ValidationError("Champ requis manquant: objet")
        if not payload.demandeur.identite.nom.strip():
            raise ValidationError("Champ requis manquant: demandeur.identite.nom")

        data = payload.model_dump(mode="json")
        now = now_iso()
        received_at = to_iso(payload.date_reception) if payload.date_reception else now
        urgent = data["priority"] in ("urgent", "critical")
        demande_id = generate_id("DEM")

        contexte = data.get("contexte") or {
            "contrat_ids": [],
            "policy_numbers": [],
            "sinistre_number": None,
            "cycle_vie_ids": [],
            "montant_concerne": None,
            "urgence_metier": urgent,
            "impact_client": "high" if urgent else "medium",
        }

        demande = {
            "id": demande_id,
            "reference_externe": data.get("reference_externe") or f"{payload.demandeur.identite.nom}-{demande_id}",
            "numero_suivi": await self._next_tracking_number(),
            "type": data["type"],
            "category": data["category"],
            "status": "received",
            "priority": data["priority"],
            "origin": data["origin"],
            "channel": data["channel"],
            "source": {"user_id": user},
            "demandeur": data["demandeur"],
            "objet": data["objet"],
            "description": data["description"],
            "donnees": data["donnees"],
            "contexte": contexte,
            "documents": data["documents"],
            "communications": [],
            "workflow": {
                "etape_actuelle": "reception",
                "etapes_suivantes": ["traitement"],
                "validations_requises": [],
                "escalations": [],
            },
            "sla": build_sla_block(data["type"], data["priority"], received_at),
            "relations": {
                "assure_id": data["demandeur"].get("assure_id"),
                "cycle_vie_ids": list(contexte.get("cycle_vie_ids") or []),
                "demandes_liees": [],
            },
            "historique_id": None,
            "traitement": {
                "assigne_a": data.get("assigne_a"),
                "equipe_traitante": default_team(data["category"]),
                "decision": None,
                "historique_traitement": [{
                    "date": now,
                    "action": "creation_demande",
                    "auteur": user,
                    "commentaire": "Demande créée",
                }],
            },
            "qualite": {
                "note_complexite": 3,
                "temps_traitement": 0,
                "nombre_aller_retours": 0,
                "erreurs": [],
                "satisfaction": None,
            },
            "metrics": {
                "score_urgence": urgency_score(data["priority"], data["type"]),
                "score_complexite": 50,
                "impact_business": 50,
                "cout_traitement": 0,
                "valeur_client": 1000,
                "rentabilite": 0,
            },
            "conformite": {
                "respect_procedure": True,
                "controles": [],
                "archivage": {
                    "duree_conservation": retention_period(data["type"]),
                    "categorie_archive": data["category"],
                },
            },
            "metadata": {
                "version": 1,
                "tags": [data["type"], data["category"]],
                "flags": ["urgent"] if urgent else [],
                "custom_fields": data.get("metadata") or {},
                "archived": False,
            },
            "created_at": now,
            "created_by": user,
            "last_modified_by": user,
            "archived_at": None,
            "versions_history": [{
                "version": 1,
                "modified_at": now,
                "modified_by": user,
                "changes_description": "Création initiale",
            }],
        }

        applied = apply_workflow_rules(demande)
        created = await self.stores.demandes.create(demande)

        logger.info(
            f"[DEMANDE] {created['id']} créée | type={created['type']} "
            f"priority={created['priority']} echeance={created['sla']['date_echeance']}"
            + (f" | rules={applied}" if applied else "")
        )
        return created

    async def get_demande(self, demande_id: str) -> Optional[Dict[str, Any]]:
        return await self.stores.demandes.get(demande_id)

    async def update_demande(
        self,
        demande_id: str,
        update: Union[DemandeUpdate, Dict[str, Any]],
        user: str = "system",
        traitement_entry: Optional[Dict[str, Any]] = None,
        extra_set: Optional[Dict[str, Any]] = None,
        extra_push: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Mise à jour partielle.

        traitement_entry remplace l'entrée d'historique dérivée de add_note
        (une seule entrée ajoutée par appel).
        """
        if not isinstance(update, DemandeUpdate):
            try:
                update = DemandeUpdate.model_validate(update)
            except PydanticValidationError as e:
                raise ValidationError(f"Mise à jour invalide: {e.errors()}") from e

        existing = await self.stores.demandes.get(demande_id)
        if not existing:
            raise NotFoundError("Demande", demande_id)

        now = now_iso()
        changes = update.model_dump(mode="json", exclude_none=True)
        metadata = existing.get("metadata", {})
        version = metadata.get("version", 1) + 1

        set_data: Dict[str, Any] = {
            "metadata.version": version,
            "last_modified_by": user,
            "updated_at": now,
        }
        push_data: Dict[str, Any] = {}

        if "status" in changes:
            set_data["status"] = changes["status"]
            if changes["status"] in TERMINAL_DEMANDE_STATUSES and not existing["sla"].get("date_traitement"):
                sla = dict(existing["sla"], date_traitement=now)
                set_data["sla.date_traitement"] = now
                set_data["sla.respect_sla"] = is_sla_respected(sla, changes["status"])
        if "priority" in changes:
            set_data["priority"] = changes["priority"]
        if "assigne_a" in changes:
            set_data["traitement.assigne_a"] = changes["assigne_a"]
        if "decision" in changes:
            set_data["traitement.decision"] = changes["decision"]
        if "add_document" in changes:
            push_data["documents"] = changes["add_document"]
        if "add_communication" in changes:
            push_data["communications"] = changes["add_communication"]
        if "update_metadata" in changes:
            set_data["metadata.custom_fields"] = {
                **metadata.get("custom_fields", {}),
                **changes["update_metadata"],
            }

        if traitement_entry is None and "add_note" in changes:
            traitement_entry = {
                "date": now,
                "action": "ajout_note",
                "auteur": user,
                "commentaire": changes["add_note"],
            }
        if traitement_entry is not None:
            push_data["traitement.historique_traitement"] = traitement_entry

        push_data["versions_history"] = {
            "version": version,
            "modified_at": now,
            "modified_by": user,
            "changes_description": f"Mise à jour: {', '.join(changes) or 'aucune'}",
        }

        if extra_set:
            set_data.update(extra_set)
        if extra_push:
            push_data.update(extra_push)

        updated = await self.stores.demandes.apply(demande_id, {"$set": set_data, "$push": push_data})
        logger.info(f"[DEMANDE] {demande_id} mise à jour v{version} | {list(changes)}")
        return updated

    async def list_overdue(self) -> List[Dict[str, Any]]:
        return await self.stores.demandes.list_overdue()

    async def list_pending_validation(self) -> List[Dict[str, Any]]:
        return await self.stores.demandes.list_pending_validation()
