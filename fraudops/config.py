"""
Configuration et utilitaires partagés
"""

import os
import uuid
from datetime import datetime, timezone, timedelta
from typing import Optional, Union
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'fraudops')

CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

# Seuils du détecteur d'anomalies (en jours)
STAGNATION_DAYS = int(os.environ.get('STAGNATION_DAYS', '90'))
RAPID_PROGRESSION_DAYS = int(os.environ.get('RAPID_PROGRESSION_DAYS', '1'))

# Balayage planifié (désactivé par défaut)
ANOMALY_SWEEP_ENABLED = os.environ.get('ANOMALY_SWEEP_ENABLED', 'false').lower() in ('1', 'true', 'yes')
ANOMALY_SWEEP_CRON_HOURS = os.environ.get('ANOMALY_SWEEP_CRON_HOURS', '*/6')
SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE', 'Europe/Paris')

_client: Optional[AsyncIOMotorClient] = None


def get_database():
    """Retourne la base MongoDB (client créé au premier appel)"""
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(MONGO_URL)
    return _client[DB_NAME]


def close_database():
    global _client
    if _client is not None:
        _client.close()
        _client = None


# ==================== HELPERS ====================

def now() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return now().isoformat()


def parse_iso(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Convertit une date ISO (ou datetime) en datetime UTC aware.
    Accepte le suffixe 'Z'. Les dates naïves sont considérées UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(value: Union[str, datetime, None]) -> Optional[str]:
    """Normalise une date vers le format ISO UTC stocké en base"""
    dt = parse_iso(value)
    return dt.isoformat() if dt else None


def add_days(value: Union[str, datetime], days: int) -> datetime:
    return parse_iso(value) + timedelta(days=days)


def days_between(start: Union[str, datetime, None], end: Union[str, datetime, None]) -> int:
    """Nombre de jours entiers écoulés entre deux dates (arrondi inférieur)"""
    start_dt = parse_iso(start)
    end_dt = parse_iso(end)
    if not start_dt or not end_dt:
        return 0
    return int((end_dt - start_dt).total_seconds() // 86400)


def generate_id(prefix: str) -> str:
    """Génère un identifiant lisible: PREFIX-XXXXXXXXXXXX"""
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"
