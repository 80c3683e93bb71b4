"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FraudOps - Modèle CycleVie (cycle de vie d'un contrat assuré)               ║
║                                                                              ║
║  LIFECYCLE STRICT:                                                           ║
║  souscription → vie_contrat → sinistre_paiement → resiliation                ║
║  + raccourci vie_contrat → resiliation                                       ║
║                                                                              ║
║  INVARIANTS:                                                                 ║
║  - resiliation est TERMINAL                                                  ║
║  - stage_history: une seule entrée ouverte (sans exited_at)                  ║
║    et c'est celle de current_stage                                           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum


class CycleVieStage(str, Enum):
    SOUSCRIPTION = "souscription"
    VIE_CONTRAT = "vie_contrat"
    SINISTRE_PAIEMENT = "sinistre_paiement"
    RESILIATION = "resiliation"


class CycleVieStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


STAGE_ORDER = [s.value for s in CycleVieStage]
TERMINAL_STAGES = {CycleVieStage.RESILIATION.value}

# Progression (%) affichée à l'entrée de chaque étape
STAGE_PROGRESSION = {
    "souscription": 10,
    "vie_contrat": 40,
    "sinistre_paiement": 70,
    "resiliation": 100,
}

# Actions en attente proposées par défaut à l'entrée d'une étape
DEFAULT_PENDING_ACTIONS = {
    "souscription": ["Vérification documents", "Validation KYC", "Signature contrat"],
    "vie_contrat": ["Renouvellement annuel", "Mise à jour profil"],
    "sinistre_paiement": ["Expertise en cours", "Validation indemnisation"],
    "resiliation": ["Finalisation documents", "Calcul remboursements"],
}


# ==================== DONNÉES PAR ÉTAPE ====================

class SouscriptionData(BaseModel):
    date_debut: Optional[str] = None
    type_contrat: str = "Auto"
    prime_initiale: float = 500
    documents_requis: List[str] = ["permis_conduire"]
    validation_kyc: bool = False
    bonus_malus: Optional[float] = None
    antecedents: List[str] = []


class VieContratData(BaseModel):
    modifications: List[Dict[str, Any]] = []
    renouvellements: List[Dict[str, Any]] = []
    suspensions: List[Dict[str, Any]] = []


class SinistrePaiementData(BaseModel):
    sinistres: List[Dict[str, Any]] = []
    paiements: List[Dict[str, Any]] = []


class ResiliationData(BaseModel):
    date_resiliation: Optional[str] = None
    motif_resiliation: Optional[str] = None
    type_resiliation: str = "client"  # client, assureur, mutual
    penalites: Optional[float] = None
    remboursements: Optional[float] = None
    documents_finalisation: List[str] = []


class Metriques(BaseModel):
    duree_etape_actuelle: int = 0        # Jours dans l'étape actuelle
    duree_totale: int = 0                # Jours depuis début cycle
    nombre_modifications: int = 0
    nombre_sinistres: int = 0
    montant_total_primes: float = 0
    montant_total_indemnisations: float = 0
    ratio_sinistralite: float = 0        # indemnisations / primes * 100


class StageHistoryEntry(BaseModel):
    stage: CycleVieStage
    entered_at: str
    exited_at: Optional[str] = None
    duration: Optional[int] = None       # Jours entiers
    triggered_by: str


class CycleVie(BaseModel):
    """
    Structure complète d'un cycle de vie en base de données
    """
    id: str
    assure_id: str
    contract_id: str

    current_stage: CycleVieStage = CycleVieStage.SOUSCRIPTION
    status: CycleVieStatus = CycleVieStatus.ACTIVE
    progression: int = 10

    souscription: Optional[SouscriptionData] = None
    vie_contrat: Optional[VieContratData] = None
    sinistre_paiement: Optional[SinistrePaiementData] = None
    resiliation: Optional[ResiliationData] = None

    metriques: Metriques = Field(default_factory=Metriques)

    historique_ids: List[str] = []
    risque_ids: List[str] = []
    demande_ids: List[str] = []
    alerte_ids: List[str] = []
    dossier_ids: List[str] = []

    validation_requise: bool = False
    prochaine_milestone: Optional[str] = None
    actions_pendantes: List[str] = []
    documents_manquants: List[str] = []

    created_at: str = ""
    created_by: str = ""
    updated_at: str = ""
    last_activity_at: str = ""
    stage_history: List[StageHistoryEntry] = []


class CycleVieCreate(BaseModel):
    assure_id: str
    contract_id: str
    initial_stage: CycleVieStage = CycleVieStage.SOUSCRIPTION
    souscription: Optional[Dict[str, Any]] = None
    documents_manquants: List[str] = []
    metadata: Dict[str, Any] = {}


class CycleVieUpdate(BaseModel):
    new_stage: Optional[CycleVieStage] = None
    new_status: Optional[CycleVieStatus] = None
    souscription: Optional[Dict[str, Any]] = None
    vie_contrat: Optional[Dict[str, Any]] = None
    sinistre_paiement: Optional[Dict[str, Any]] = None
    resiliation: Optional[Dict[str, Any]] = None
    add_historique: Optional[str] = None
    add_risque: Optional[str] = None
    add_demande: Optional[str] = None
    add_alerte: Optional[str] = None
    add_dossier: Optional[str] = None
    documents_manquants: Optional[List[str]] = None
    context: Dict[str, Any] = {}


class TransitionRequest(BaseModel):
    target_stage: CycleVieStage
    context: Dict[str, Any] = {}
    triggered_by_type: str = "manual"


# ==================== RÈGLES & TRANSITIONS ====================

class ConditionOperator(str, Enum):
    EQUALS = "equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"


class RuleCondition(BaseModel):
    field: str
    operator: ConditionOperator = ConditionOperator.EQUALS
    value: Any = None


class StageRule(BaseModel):
    """Règle statique autorisant le passage from_stage → to_stage"""
    id: str
    from_stage: CycleVieStage
    to_stage: CycleVieStage
    conditions: List[RuleCondition] = []
    automatic_transition: bool = True
    required_documents: List[str] = []
    required_validations: List[str] = []
    estimated_duration: int = 30  # Jours


class CycleVieTransition(BaseModel):
    """Enregistrement d'audit d'une transition exécutée"""
    id: str
    cycle_vie_id: str
    from_stage: CycleVieStage
    to_stage: CycleVieStage
    triggered_by: str
    triggered_by_type: str = "manual"  # demande, sinistre, modification, system, manual
    validation_required: bool = False
    validated_by: Optional[str] = None
    validated_at: Optional[str] = None
    metadata: Dict[str, Any] = {}
    timestamp: str


# ==================== ALERTES CYCLE DE VIE ====================

class CycleVieAlertType(str, Enum):
    STAGNATION = "stagnation"
    RAPID_PROGRESSION = "rapid_progression"
    DOCUMENT_MISSING = "document_missing"
    VALIDATION_REQUIRED = "validation_required"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CycleVieAlert(BaseModel):
    """Anomalie détectée. Contenu écrit une fois; seuls ack/résolution sont posés ensuite."""
    id: str
    cycle_vie_id: str
    type: CycleVieAlertType
    severity: AlertSeverity
    message: str
    details: Dict[str, Any] = {}
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[str] = None
    created_at: str
