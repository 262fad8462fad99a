"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres du serveur de parties (host/port, stockage, règles de jeu,
  bornes anti-triche, délais de vie des sessions).
- Les valeurs par défaut conviennent pour un environnement de dev local.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services/routers importent `from jetoni.config.settings import settings`.

Bonnes pratiques
----------------
- *Ne commitez pas* une valeur réelle de `ADMIN_TOKEN`. Utilisez `.env`.
- `REDIS_URL` vide → stockage en mémoire (dev/tests uniquement, rien ne survit au process).

Exemples de `.env`
------------------
APP_NAME="JetOni Backend (Staging)"
PORT=8080
ADMIN_TOKEN="mettre-une-valeur-secrète-en-prod"
REDIS_URL="redis://localhost:6379/0"
STALE_SESSION_SECONDS=600
"""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "JetOni Backend"
    # Bind réseau (FastAPI / Uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Jeton admin utilisé par la dépendance `admin_required`
    # ⚠️ Remplacez en production via .env
    ADMIN_TOKEN: str = "changeme-super-secret"

    # Stockage clé/valeur (Redis en prod, mémoire si vide)
    REDIS_URL: str = ""
    KEY_PREFIX: str = ""
    SESSION_TTL_SECONDS: int = 3600
    ACTIVE_INDEX_TTL_SECONDS: int = 3600

    # Règles de configuration d'une partie
    MIN_TOTAL_PLAYERS: int = 4
    MAX_TOTAL_PLAYERS: int = 20
    ALLOWED_PLAYER_COUNTS: List[int] = [4, 6, 8, 10, 15, 20]
    ALLOWED_ROUND_DURATIONS: List[int] = [180, 300]
    ALLOWED_ROUND_COUNTS: List[int] = [1, 3, 5]

    # Bornes du validateur d'état joueur
    WORLD_BOUND: float = 10000.0
    MAX_SPEED: float = 500.0
    MAX_FUEL: float = 100.0
    MAX_ABILITY_COOLDOWN: float = 30.0

    # Cycle de vie des sessions (secondes)
    SESSION_MAX_AGE_SECONDS: int = 1800
    ENDED_GRACE_SECONDS: int = 15
    STALE_SESSION_SECONDS: int = 300
    SWEEP_INTERVAL_SECONDS: int = 120
    SWEEP_INITIAL_DELAY_SECONDS: int = 30
    SWEEP_ENABLED: bool = True

    # Vivacité de l'hôte
    HEARTBEAT_INTERVAL_SECONDS: float = 5.0
    HOST_TIMEOUT_SECONDS: float = 30.0
    HOST_MAX_CONSECUTIVE_FAILURES: int = 3

    # Noms d'hôte "provisoires" (username pas encore résolu côté client)
    PLACEHOLDER_HOST_NAMES: List[str] = ["Host", "Unknown"]
    PLACEHOLDER_HOST_PREFIXES: List[str] = ["Guest", "TempUser"]

    LOG_LEVEL: str = "INFO"

    # Paramétrage pydantic-settings :
    # - lit le fichier .env (UTF-8) si présent
    # - ignore les clés supplémentaires pour éviter les erreurs
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


# Instance unique importable partout : `settings`
settings = Settings()
