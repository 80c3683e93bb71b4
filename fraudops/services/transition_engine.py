"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FraudOps - Stage Transition Engine                                          ║
║                                                                              ║
║  SEUL CE MODULE change current_stage d'un cycle de vie                       ║
║                                                                              ║
║  ORDRE CANONIQUE:                                                            ║
║  souscription → vie_contrat → sinistre_paiement → resiliation                ║
║                                                                              ║
║  RÈGLES:                                                                     ║
║  - target == current       → no-op (rien n'est écrit)                        ║
║  - current == resiliation  → refus (étape terminale)                         ║
║  - retour en arrière        → refus                                          ║
║  - aucune règle (from, to) → refus                                           ║
║  - règle manuelle ou condition non remplie → transition exécutée             ║
║    mais marquée validation_required                                          ║
║                                                                              ║
║  INVARIANT: une seule entrée stage_history ouverte, celle de current_stage   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import NamedTuple, Optional, List, Dict, Any

from fraudops.config import now, days_between, generate_id
from fraudops.models import (
    CycleVieStage, STAGE_ORDER, TERMINAL_STAGES, STAGE_PROGRESSION,
    ConditionOperator, RuleCondition, StageRule, CycleVieTransition,
)
from fraudops.services.cycle_metrics import calculate_metrics
from fraudops.services.errors import ValidationError, NotFoundError, InvalidTransitionError
from fraudops.services.event_logger import log_event

logger = logging.getLogger("transition_engine")


# ════════════════════════════════════════════════════════════════════════════
# RÈGLES PAR DÉFAUT
# ════════════════════════════════════════════════════════════════════════════

DEFAULT_STAGE_RULES = [
    StageRule(
        id="souscription-to-vie",
        from_stage=CycleVieStage.SOUSCRIPTION,
        to_stage=CycleVieStage.VIE_CONTRAT,
        conditions=[
            RuleCondition(field="validation_kyc", value=True),
            RuleCondition(field="documents_requis", value="complete"),
        ],
        automatic_transition=True,
        required_documents=["contrat_signe"],
        required_validations=["kyc_validation"],
        estimated_duration=7,
    ),
    StageRule(
        id="vie-to-sinistre",
        from_stage=CycleVieStage.VIE_CONTRAT,
        to_stage=CycleVieStage.SINISTRE_PAIEMENT,
        conditions=[RuleCondition(field="sinistre_declared", value=True)],
        automatic_transition=True,
        required_documents=["declaration_sinistre"],
        required_validations=[],
        estimated_duration=1,
    ),
    StageRule(
        id="vie-to-resiliation",
        from_stage=CycleVieStage.VIE_CONTRAT,
        to_stage=CycleVieStage.RESILIATION,
        conditions=[RuleCondition(field="resiliation_request", value=True)],
        automatic_transition=False,
        required_documents=["lettre_resiliation"],
        required_validations=["manager_approval"],
        estimated_duration=30,
    ),
    StageRule(
        id="sinistre-to-resiliation",
        from_stage=CycleVieStage.SINISTRE_PAIEMENT,
        to_stage=CycleVieStage.RESILIATION,
        conditions=[RuleCondition(field="resiliation_request", value=True)],
        automatic_transition=False,
        required_documents=["lettre_resiliation"],
        required_validations=["manager_approval"],
        estimated_duration=30,
    ),
]

DEFAULT_ESTIMATED_DURATION = 30

_MISSING = object()


class TransitionOutcome(NamedTuple):
    cycle: Dict[str, Any]
    transition: Optional[Dict[str, Any]]


# ════════════════════════════════════════════════════════════════════════════
# ÉVALUATION DES CONDITIONS
# ════════════════════════════════════════════════════════════════════════════

def resolve_field(source: Dict[str, Any], path: str):
    """Lecture d'un chemin pointé (ex: souscription.validation_kyc)"""
    value = source
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def lookup_condition_value(field: str, context: Dict[str, Any], cycle: Dict[str, Any]):
    """Contexte d'abord, puis le cycle, puis les données de l'étape courante"""
    for source in (context, cycle, cycle.get(cycle.get("current_stage")) or {}):
        value = resolve_field(source, field)
        if value is not _MISSING:
            return value
    return _MISSING


def evaluate_condition(condition: RuleCondition, context: Dict[str, Any], cycle: Dict[str, Any]) -> bool:
    actual = lookup_condition_value(condition.field, context, cycle)
    if actual is _MISSING:
        return False

    operator = ConditionOperator(condition.operator)
    try:
        if operator == ConditionOperator.EQUALS:
            return actual == condition.value
        if operator == ConditionOperator.GREATER_THAN:
            return actual > condition.value
        if operator == ConditionOperator.LESS_THAN:
            return actual < condition.value
        if operator == ConditionOperator.CONTAINS:
            return condition.value in actual
    except TypeError:
        return False
    return False


def coerce_stage(stage) -> str:
    try:
        return CycleVieStage(stage).value
    except ValueError:
        raise ValidationError(f"Étape inconnue: '{stage}'. Étapes valides: {STAGE_ORDER}")


def next_canonical_stage(stage: str) -> str:
    """Étape suivante dans l'ordre canonique (resiliation reste resiliation)"""
    index = STAGE_ORDER.index(stage)
    return STAGE_ORDER[min(index + 1, len(STAGE_ORDER) - 1)]


class StageTransitionEngine:

    def __init__(self, stores, rules: List[StageRule] = None):
        self.stores = stores
        self.rules = list(rules if rules is not None else DEFAULT_STAGE_RULES)

    def find_rule(self, from_stage: str, to_stage: str) -> Optional[StageRule]:
        for rule in self.rules:
            if CycleVieStage(rule.from_stage).value == from_stage and CycleVieStage(rule.to_stage).value == to_stage:
                return rule
        return None

    def estimated_duration(self, from_stage: str, to_stage: str) -> int:
        rule = self.find_rule(from_stage, to_stage)
        return rule.estimated_duration if rule else DEFAULT_ESTIMATED_DURATION

    def check_transition(self, current: str, target: str) -> StageRule:
        """Lève InvalidTransitionError si (current → target) est interdit"""
        if current in TERMINAL_STAGES:
            raise InvalidTransitionError(f"Étape '{current}' terminale: aucune transition possible")
        if STAGE_ORDER.index(target) < STAGE_ORDER.index(current):
            raise InvalidTransitionError(f"Retour en arrière interdit: '{current}' → '{target}'")
        rule = self.find_rule(current, target)
        if rule is None:
            raise InvalidTransitionError(f"Aucune règle pour la transition '{current}' → '{target}'")
        return rule

    async def transition(
        self,
        cycle_vie_id: str,
        target_stage,
        actor_id: str = "system",
        context: Optional[Dict[str, Any]] = None,
        triggered_by_type: str = "manual"
    ) -> TransitionOutcome:
        target = coerce_stage(target_stage)

        cycle = await self.stores.cycle_vies.get(cycle_vie_id)
        if not cycle:
            raise NotFoundError("CycleVie", cycle_vie_id)

        current = cycle["current_stage"]
        if target == current:
            return TransitionOutcome(cycle=cycle, transition=None)

        rule = self.check_transition(current, target)
        context = context or {}

        evaluations = [
            {
                "field": c.field,
                "operator": ConditionOperator(c.operator).value,
                "expected": c.value,
                "met": evaluate_condition(c, context, cycle),
            }
            for c in rule.conditions
        ]
        conditions_met = all(e["met"] for e in evaluations)
        validation_required = not rule.automatic_transition or not conditions_met

        at = now()
        timestamp = at.isoformat()

        # Fermer l'entrée ouverte puis ouvrir celle de la nouvelle étape
        stage_history = []
        for entry in cycle.get("stage_history") or []:
            entry = dict(entry)
            if not entry.get("exited_at"):
                entry["exited_at"] = timestamp
                entry["duration"] = days_between(entry["entered_at"], at)
            stage_history.append(entry)
        stage_history.append({
            "stage": target,
            "entered_at": timestamp,
            "exited_at": None,
            "duration": None,
            "triggered_by": actor_id,
        })

        provided = set(context.get("documents") or [])
        documents_manquants = [d for d in rule.required_documents if d not in provided]

        changes = {
            "current_stage": target,
            "progression": STAGE_PROGRESSION[target],
            "stage_history": stage_history,
            "validation_requise": validation_required,
            "actions_pendantes": list(rule.required_validations),
            "documents_manquants": documents_manquants,
            "last_activity_at": timestamp,
        }
        if target in TERMINAL_STAGES:
            changes["status"] = "completed"
        changes["metriques"] = calculate_metrics({**cycle, **changes}, at)

        transition = CycleVieTransition(
            id=generate_id("TRANS"),
            cycle_vie_id=cycle_vie_id,
            from_stage=current,
            to_stage=target,
            triggered_by=actor_id,
            triggered_by_type=triggered_by_type,
            validation_required=validation_required,
            metadata={
                "rule_id": rule.id,
                "automatic_rule": rule.automatic_transition,
                "conditions": evaluations,
                "conditions_met": conditions_met,
                "documents_manquants": documents_manquants,
            },
            timestamp=timestamp,
        ).model_dump(mode="json")

        updated = await self.stores.cycle_vies.update(cycle_vie_id, changes)
        transition = await self.stores.transitions.create(transition)

        await log_event(
            self.stores.db,
            action="stage_transition",
            entity_type="cycle_vie",
            entity_id=cycle_vie_id,
            user=actor_id,
            details={
                "from_stage": current,
                "to_stage": target,
                "rule_id": rule.id,
                "validation_required": validation_required,
            },
            related={"transition_id": transition["id"]},
        )

        logger.info(
            f"[TRANSITION] {cycle_vie_id}: {current} → {target} | rule={rule.id} "
            f"validation_required={validation_required} by={actor_id}"
        )
        return TransitionOutcome(cycle=updated, transition=transition)

    async def validate_transition(self, transition_id: str, user: str = "system") -> Dict[str, Any]:
        transition = await self.stores.transitions.get(transition_id)
        if not transition:
            raise NotFoundError("Transition", transition_id)

        if transition.get("validated_at"):
            return transition

        transition = await self.stores.transitions.update(transition_id, {
            "validated_by": user,
            "validated_at": now().isoformat(),
        })

        cycle_vie_id = transition["cycle_vie_id"]
        latest = await self.stores.transitions.latest_for_cycle(cycle_vie_id)
        if latest and latest["id"] == transition_id:
            await self.stores.cycle_vies.update(cycle_vie_id, {"validation_requise": False})

        await log_event(
            self.stores.db,
            action="transition_validated",
            entity_type="cycle_vie",
            entity_id=cycle_vie_id,
            user=user,
            related={"transition_id": transition_id},
        )
        logger.info(f"[TRANSITION] {transition_id} validée par {user}")
        return transition

    async def list_transitions(self, cycle_vie_id: str) -> List[Dict[str, Any]]:
        return await self.stores.transitions.list({"cycle_vie_id": cycle_vie_id})
