"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  FraudOps - Modèles Alert / Case (triage et investigation fraude)            ║
║                                                                              ║
║  Alert: pending → assigned → in_review → qualified / rejected                ║
║  Case:  open → investigating → pending_review → closed                       ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum


class FraudAlertStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_REVIEW = "in_review"
    QUALIFIED = "qualified"
    REJECTED = "rejected"


class FraudAlertSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FraudAlertSource(str, Enum):
    DOCUMENT_ANALYSIS = "document_analysis"
    PATTERN_DETECTION = "pattern_detection"
    BEHAVIORAL_ANALYSIS = "behavioral_analysis"
    CORRELATION = "correlation"
    EXTERNAL_API = "external_api"


class CaseStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    PENDING_REVIEW = "pending_review"
    CLOSED = "closed"


class CasePriority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class CaseDecision(str, Enum):
    FRAUD_CONFIRMED = "fraud_confirmed"
    FRAUD_REJECTED = "fraud_rejected"
    INSUFFICIENT_PROOF = "insufficient_proof"
    PENDING = "pending"


class FraudAlertCreate(BaseModel):
    type: str
    source: FraudAlertSource = FraudAlertSource.DOCUMENT_ANALYSIS
    severity: FraudAlertSeverity = FraudAlertSeverity.MEDIUM
    score: int = 0
    event_id: Optional[str] = None
    assigned_to: Optional[str] = None
    team: Optional[str] = None
    metadata: Dict[str, Any] = {}


class FraudAlertUpdate(BaseModel):
    status: Optional[FraudAlertStatus] = None
    severity: Optional[FraudAlertSeverity] = None
    assigned_to: Optional[str] = None
    team: Optional[str] = None
    qualification: Optional[str] = None
    qualification_notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class FraudAlert(BaseModel):
    id: str
    type: str
    source: FraudAlertSource
    severity: FraudAlertSeverity
    status: FraudAlertStatus = FraudAlertStatus.PENDING
    score: int = 0
    event_id: Optional[str] = None
    assigned_to: Optional[str] = None
    team: Optional[str] = None
    qualification: Optional[str] = None
    case_id: Optional[str] = None
    metadata: Dict[str, Any] = {}
    created_at: str = ""
    updated_at: str = ""


class CaseMetrics(BaseModel):
    estimated_loss: float = 0
    recovered_amount: float = 0
    prevented_amount: float = 0
    investigation_cost: float = 0
    total_roi: float = 0


class CaseCreate(BaseModel):
    alert_ids: List[str]
    primary_alert_id: Optional[str] = None
    priority: CasePriority = CasePriority.NORMAL
    assign_to: Optional[str] = None
    investigation_team: str = "gestionnaire"
    notes: Optional[str] = None
    estimated_loss: float = 0


class CaseActionRequest(BaseModel):
    action: str
    notes: Optional[str] = None
    assign_to: Optional[str] = None
    decision: Optional[CaseDecision] = None
    metrics: Optional[Dict[str, float]] = None


class Case(BaseModel):
    id: str
    reference: str
    alerts: List[str] = []
    primary_alert_id: str
    status: CaseStatus = CaseStatus.OPEN
    priority: CasePriority = CasePriority.NORMAL
    investigator: Optional[str] = None
    supervisor: Optional[str] = None
    investigation_team: str = "gestionnaire"
    decision: CaseDecision = CaseDecision.PENDING
    decision_reason: Optional[str] = None
    decision_date: Optional[str] = None
    metrics: CaseMetrics = Field(default_factory=CaseMetrics)
    timeline: List[Dict[str, Any]] = []
    notes: List[str] = []
    tags: List[str] = []
    created_at: str = ""
    created_by: str = ""
    updated_at: str = ""
    closed_at: Optional[str] = None
