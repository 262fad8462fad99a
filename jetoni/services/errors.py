"""
Service: errors.py
Rôle:
- Taxonomie des erreurs métier du gestionnaire de sessions.
- Chaque erreur porte un `code` stable (renvoyé tel quel aux clients dans `detail`).

Les routes traduisent ces erreurs en HTTPException (400 par défaut, 404 pour NotFound
sur les lectures). Seule `StoreError` (I/O du stockage) remonte en 500 : aucune
politique d'état partiel n'est sûre dans ce cas.
"""


class StoreError(RuntimeError):
    """Échec d'I/O du stockage clé/valeur (Redis indisponible, timeout...)."""


class SessionError(Exception):
    code = "session_error"
    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidConfig(SessionError):
    code = "invalid_config"


class NotFound(SessionError):
    code = "not_found"
    status_code = 404


class AlreadyStarted(SessionError):
    code = "already_started"


class Full(SessionError):
    code = "full"


class Expired(SessionError):
    code = "expired"


class InvalidState(SessionError):
    code = "invalid_state"


class WrongStatus(SessionError):
    code = "wrong_status"


class PlayerNotFound(SessionError):
    code = "player_not_found"
