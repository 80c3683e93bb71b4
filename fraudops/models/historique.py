"""
FraudOps - Modèle Historique

Enregistrement archivé et immuable, dérivé d'une demande traitée.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel


class Historique(BaseModel):
    id: str
    assure_id: str = "unknown"
    cycle_vie_id: Optional[str] = None
    demande_id: Optional[str] = None

    event_type: str
    category: str
    source: str
    impact: str = "low"  # low, medium, high, critical

    title: str
    description: str = ""
    short_summary: str = ""

    business_context: Dict[str, Any] = {}
    triggered_by: str = "system"
    triggered_by_role: Optional[str] = None
    related_entities: Dict[str, List[str]] = {}
    metadata: Dict[str, Any] = {}

    status: str = "completed"
    requires_action: bool = False
    completed_at: Optional[str] = None
    created_at: str = ""
    version: int = 1
