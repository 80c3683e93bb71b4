"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FraudOps - Modèle Demande (point d'entrée des interactions)                 ║
║                                                                              ║
║  RÈGLES:                                                                     ║
║  1. date_echeance = date_reception + delai_commercial (jours)                ║
║  2. respect_sla recalculé à la lecture (voir services/sla.py)                ║
║  3. Une demande n'est jamais supprimée: archivage = conversion Historique    ║
║  4. historique_traitement est en ajout seul                                  ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum


class DemandeType(str, Enum):
    SOUSCRIPTION_CONTRAT = "souscription_contrat"
    MODIFICATION_CONTRAT = "modification_contrat"
    RENOUVELLEMENT = "renouvellement"
    RESILIATION = "resiliation"
    DECLARATION_SINISTRE = "declaration_sinistre"
    COMPLEMENT_SINISTRE = "complement_sinistre"
    CONTESTATION_DECISION = "contestation_decision"
    RECOURS_EXPERTISE = "recours_expertise"
    DEMANDE_INFO = "demande_info"
    RECLAMATION = "reclamation"
    MISE_EN_DEMEURE = "mise_en_demeure"
    MEDIATION = "mediation"
    CHANGEMENT_COORDONNEES = "changement_coordonnees"
    AJOUT_CONDUCTEUR = "ajout_conducteur"
    CHANGEMENT_VEHICULE = "changement_vehicule"
    SUSPENSION_TEMPORAIRE = "suspension_temporaire"
    DEMANDE_RISTOURNE = "demande_ristourne"
    ATTESTATION = "attestation"
    DUPLICATA = "duplicata"
    HISTORIQUE_SINISTRES = "historique_sinistres"
    CONSULTATION_DOSSIER = "consultation_dossier"
    DROIT_RECTIFICATION = "droit_rectification"
    DROIT_OUBLI = "droit_oubli"
    DROIT_PORTABILITE = "droit_portabilite"
    SIGNALEMENT_FRAUDE = "signalement_fraude"
    ALERTE_EXTERNE = "alerte_externe"
    CONTROLE_QUALITE = "controle_qualite"
    AUDIT_COMPLIANCE = "audit_compliance"
    INTEGRATION_API = "integration_api"
    WEBHOOK_EXTERNE = "webhook_externe"
    BATCH_IMPORT = "batch_import"
    SYSTEM_SYNC = "system_sync"


class DemandeCategory(str, Enum):
    COMMERCIAL = "commercial"
    OPERATIONNEL = "operationnel"
    SINISTRE = "sinistre"
    SERVICE_CLIENT = "service_client"
    JURIDIQUE = "juridique"
    COMPLIANCE = "compliance"
    TECHNIQUE = "technique"
    EXTERNE = "externe"
    AUTOMATIQUE = "automatique"


class DemandeStatus(str, Enum):
    RECEIVED = "received"
    IN_PROGRESS = "in_progress"
    PENDING_VALIDATION = "pending_validation"
    PENDING_DOCUMENTS = "pending_documents"
    PENDING_PAYMENT = "pending_payment"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    ESCALATED = "escalated"
    SUSPENDED = "suspended"


class DemandePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
    CRITICAL = "critical"


class DemandeChannel(str, Enum):
    WEB_PORTAL = "web_portal"
    MOBILE_APP = "mobile_app"
    PHONE = "phone"
    EMAIL = "email"
    CHAT = "chat"
    POSTAL_MAIL = "postal_mail"
    IN_PERSON = "in_person"
    API = "api"
    WEBHOOK = "webhook"
    BATCH = "batch"
    SYSTEM_AUTOMATIC = "system_automatic"


class DemandeOrigin(str, Enum):
    CLIENT = "client"
    PROSPECT = "prospect"
    INTERMEDIAIRE = "intermediaire"
    EXPERT = "expert"
    PARTENAIRE = "partenaire"
    SYSTEM = "system"
    REGULATOR = "regulator"


# Statuts sans traitement ultérieur
TERMINAL_DEMANDE_STATUSES = {
    DemandeStatus.COMPLETED.value,
    DemandeStatus.REJECTED.value,
    DemandeStatus.CANCELLED.value,
}


# ==================== SOUS-BLOCS ====================

class Identite(BaseModel):
    nom: str
    prenom: Optional[str] = None
    email: Optional[str] = None
    telephone: Optional[str] = None
    adresse: Optional[Dict[str, Any]] = None


class Demandeur(BaseModel):
    """Snapshot de l'identité du demandeur au moment de la demande"""
    assure_id: Optional[str] = None
    identite: Identite
    qualite: str = "assure"  # assure, souscripteur, beneficiaire, mandataire, tiers, systeme
    authentifie: bool = False
    verification_kyc: bool = False


class SlaBlock(BaseModel):
    date_reception: str
    delai_commercial: int
    date_echeance: str
    date_traitement: Optional[str] = None
    respect_sla: bool = True
    retard_justifie: Optional[str] = None


class ValidationRequise(BaseModel):
    type: str
    valideur: str           # Rôle/équipe valideur
    obligatoire: bool = True
    deadline: Optional[str] = None
    seuil: Optional[float] = None


class Escalation(BaseModel):
    declencheur: str
    vers: str
    delai: int = 0          # Heures
    automatique: bool = False


class WorkflowBlock(BaseModel):
    etape_actuelle: str = "reception"
    etapes_suivantes: List[str] = ["traitement"]
    validations_requises: List[ValidationRequise] = []
    escalations: List[Escalation] = []


class TraitementEntry(BaseModel):
    date: str
    action: str
    auteur: str
    commentaire: Optional[str] = None
    documents_ajoutes: List[str] = []


class Decision(BaseModel):
    type: str               # accepte, refuse, accepte_avec_reserves, en_attente_complements
    motif: str
    date_decision: str
    decideur: str
    conditions: List[str] = []
    montant_accorde: Optional[float] = None


class DocumentJoint(BaseModel):
    id: str
    nom: str
    type: str
    taille: int = 0
    statut: str = "pending"  # pending, validated, rejected, missing
    obligatoire: bool = False
    uploaded_at: str = ""
    uploaded_by: str = ""


class Contexte(BaseModel):
    contrat_ids: List[str] = []
    policy_numbers: List[str] = []
    sinistre_number: Optional[str] = None
    cycle_vie_ids: List[str] = []
    montant_concerne: Optional[float] = None
    urgence_metier: bool = False
    impact_client: str = "medium"


# ==================== REQUÊTES ====================

class DemandeCreate(BaseModel):
    """Création d'une demande (canal client, partenaire ou système)"""
    type: DemandeType
    category: DemandeCategory
    priority: DemandePriority
    origin: DemandeOrigin
    channel: DemandeChannel
    demandeur: Demandeur
    objet: str
    description: str = ""
    reference_externe: Optional[str] = None
    date_reception: Optional[str] = None  # Défaut: maintenant
    contexte: Optional[Contexte] = None
    donnees: Dict[str, Any] = {}
    documents: List[DocumentJoint] = []
    assigne_a: Optional[str] = None
    metadata: Dict[str, Any] = {}


class DemandeUpdate(BaseModel):
    """Modification partielle d'une demande"""
    status: Optional[DemandeStatus] = None
    priority: Optional[DemandePriority] = None
    assigne_a: Optional[str] = None
    decision: Optional[Decision] = None
    add_document: Optional[DocumentJoint] = None
    add_communication: Optional[Dict[str, Any]] = None
    add_note: Optional[str] = None
    update_metadata: Optional[Dict[str, Any]] = None


class WorkflowActionRequest(BaseModel):
    action: str
    notes: Optional[str] = None


class DemandeDocument(BaseModel):
    """
    Structure complète d'une demande en base de données
    """
    id: str
    reference_externe: Optional[str] = None
    numero_suivi: str

    type: DemandeType
    category: DemandeCategory
    status: DemandeStatus = DemandeStatus.RECEIVED
    priority: DemandePriority

    origin: DemandeOrigin
    channel: DemandeChannel
    source: Dict[str, Any] = {}

    demandeur: Demandeur
    objet: str
    description: str = ""

    donnees: Dict[str, Any] = {}
    contexte: Contexte = Field(default_factory=Contexte)
    documents: List[DocumentJoint] = []
    communications: List[Dict[str, Any]] = []

    workflow: WorkflowBlock = Field(default_factory=WorkflowBlock)
    sla: SlaBlock

    relations: Dict[str, Any] = {}
    historique_id: Optional[str] = None

    traitement: Dict[str, Any] = {}
    qualite: Dict[str, Any] = {}
    metrics: Dict[str, Any] = {}
    conformite: Dict[str, Any] = {}
    metadata: Dict[str, Any] = {}

    created_at: str = ""
    created_by: str = ""
    updated_at: str = ""
    last_modified_by: str = ""
    archived_at: Optional[str] = None
    versions_history: List[Dict[str, Any]] = []
