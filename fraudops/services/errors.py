"""
FraudOps - Erreurs métier

Toutes les erreurs remontent sous forme d'exceptions à la frontière des
services. Les routes les traduisent en codes HTTP (voir server.py).
"""


class FraudOpsError(Exception):
    """Base de toutes les erreurs métier"""
    status_code = 400


class ValidationError(FraudOpsError):
    """Champ requis manquant ou valeur invalide (création ou action)"""
    status_code = 422


class NotFoundError(FraudOpsError):
    """Opération sur un identifiant inconnu"""
    status_code = 404

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} introuvable")


class UnsupportedActionError(FraudOpsError):
    """Action de workflow inconnue"""
    status_code = 400

    def __init__(self, action: str, supported=None):
        self.action = action
        self.supported = list(supported or [])
        message = f"Action non supportée: '{action}'"
        if self.supported:
            message += f". Actions valides: {self.supported}"
        super().__init__(message)


class InvalidTransitionError(FraudOpsError):
    """Transition refusée (ordre des étapes, étape terminale, précondition)"""
    status_code = 409
