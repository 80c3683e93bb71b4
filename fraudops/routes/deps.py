"""
FraudOps - Dépendances partagées des routes
"""

from typing import Optional, List
from fastapi import Header, Request

from fraudops.services.stores import Stores


def get_stores(request: Request) -> Stores:
    """Stores construits au démarrage de l'app (voir server.create_app)"""
    return request.app.state.stores


def get_actor(x_user: Optional[str] = Header(None)) -> str:
    """Utilisateur à l'origine de l'action (header X-User)"""
    return x_user or "system"


def split_csv(value: Optional[str]) -> Optional[List[str]]:
    """'a,b , c' → ['a', 'b', 'c']"""
    if not value:
        return None
    return [v.strip() for v in value.split(",") if v.strip()]


def build_filters(**params) -> dict:
    """Retire les paramètres absents pour ne garder que les filtres fournis"""
    return {k: v for k, v in params.items() if v is not None}
