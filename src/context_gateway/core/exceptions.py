"""
Exceptions personnalisées pour le Context Pruning Gateway.
"""


class ContextGatewayError(Exception):
    """Exception de base pour toutes les erreurs du gateway."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "unknown_error"
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} - Détails: {self.details}"
        return f"[{self.code}] {self.message}"


class ConfigurationError(ContextGatewayError):
    """Erreur de configuration (fichier manquant, valeur invalide)."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message=message,
            code="config_error",
            details={"key": config_key} if config_key else {}
        )


class PersistenceError(ContextGatewayError):
    """Échec de lecture/écriture de l'état de session sur disque."""

    def __init__(self, message: str, session_id: str = None, operation: str = None):
        details = {}
        if session_id:
            details["session_id"] = session_id
        if operation:
            details["operation"] = operation
        super().__init__(
            message=message,
            code="persistence_error",
            details=details
        )


class HostQueryError(ContextGatewayError):
    """Erreur lors d'une requête vers l'hôte (session, parent, historique)."""

    def __init__(self, message: str, session_id: str = None):
        super().__init__(
            message=message,
            code="host_query_error",
            details={"session_id": session_id} if session_id else {}
        )


class PruneActionError(ContextGatewayError):
    """Entrée invalide pour une action de pruning explicite.

    Le message est destiné à l'appelant (modèle ou humain) tel quel.
    """

    def __init__(self, message: str, reason: str = None):
        super().__init__(
            message=message,
            code="prune_action_error",
            details={"reason": reason} if reason else {}
        )
