"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FraudOps - Models Package                                                   ║
║                                                                              ║
║  Exports tous les modèles pour import facile                                 ║
║  from fraudops.models import DemandeCreate, CycleVieStage, etc.              ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Demande (point d'entrée)
from .demande import (
    DemandeType,
    DemandeCategory,
    DemandeStatus,
    DemandePriority,
    DemandeChannel,
    DemandeOrigin,
    TERMINAL_DEMANDE_STATUSES,
    Demandeur,
    Identite,
    Decision,
    DemandeCreate,
    DemandeUpdate,
    DemandeDocument,
    WorkflowActionRequest,
)

# CycleVie (VERROUILLÉ: ordre des étapes)
from .cyclevie import (
    CycleVieStage,
    CycleVieStatus,
    STAGE_ORDER,
    TERMINAL_STAGES,
    STAGE_PROGRESSION,
    DEFAULT_PENDING_ACTIONS,
    SouscriptionData,
    VieContratData,
    SinistrePaiementData,
    ResiliationData,
    Metriques,
    StageHistoryEntry,
    CycleVie,
    CycleVieCreate,
    CycleVieUpdate,
    TransitionRequest,
    ConditionOperator,
    RuleCondition,
    StageRule,
    CycleVieTransition,
    CycleVieAlertType,
    AlertSeverity,
    CycleVieAlert,
)

# Historique
from .historique import Historique

# Alert / Case (fraude)
from .fraud import (
    FraudAlertStatus,
    FraudAlertSeverity,
    FraudAlertSource,
    FraudAlertCreate,
    FraudAlertUpdate,
    FraudAlert,
    CaseStatus,
    CasePriority,
    CaseDecision,
    CaseCreate,
    CaseActionRequest,
    Case,
)

__all__ = [
    # Demande
    "DemandeType",
    "DemandeCategory",
    "DemandeStatus",
    "DemandePriority",
    "DemandeChannel",
    "DemandeOrigin",
    "TERMINAL_DEMANDE_STATUSES",
    "Demandeur",
    "Identite",
    "Decision",
    "DemandeCreate",
    "DemandeUpdate",
    "DemandeDocument",
    "WorkflowActionRequest",
    # CycleVie
    "CycleVieStage",
    "CycleVieStatus",
    "STAGE_ORDER",
    "TERMINAL_STAGES",
    "STAGE_PROGRESSION",
    "DEFAULT_PENDING_ACTIONS",
    "SouscriptionData",
    "VieContratData",
    "SinistrePaiementData",
    "ResiliationData",
    "Metriques",
    "StageHistoryEntry",
    "CycleVie",
    "CycleVieCreate",
    "CycleVieUpdate",
    "TransitionRequest",
    "ConditionOperator",
    "RuleCondition",
    "StageRule",
    "CycleVieTransition",
    "CycleVieAlertType",
    "AlertSeverity",
    "CycleVieAlert",
    # Historique
    "Historique",
    # Fraude
    "FraudAlertStatus",
    "FraudAlertSeverity",
    "FraudAlertSource",
    "FraudAlertCreate",
    "FraudAlertUpdate",
    "FraudAlert",
    "CaseStatus",
    "CasePriority",
    "CaseDecision",
    "CaseCreate",
    "CaseActionRequest",
    "Case",
]
