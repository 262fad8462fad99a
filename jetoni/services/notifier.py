"""
Canal consultatif (advisory) pour les événements de session.

Le gestionnaire de sessions propose chaque transition à un `Notifier` ; la diffusion est
best-effort : un échec est journalisé puis ignoré, il ne bloque jamais une écriture
autoritaire dans le stockage.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)


class Notifier:
    """Interface notify-or-ignore. L'implémentation par défaut ne fait rien."""

    def notify(self, session_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        return None


class RecordingNotifier(Notifier):
    """Garde les événements en mémoire (outils de diagnostic, tests)."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    def notify(self, session_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        self.events.append((session_id, event_type, payload))

    def types(self) -> List[str]:
        return [event_type for _, event_type, _ in self.events]


def safe_notify(notifier: Notifier, session_id: str, event_type: str, payload: Dict[str, Any]) -> None:
    try:
        notifier.notify(session_id, event_type, payload)
    except Exception:
        logger.warning(
            "Advisory notification failed",
            exc_info=True,
            extra={"session_id": session_id, "event_type": event_type},
        )
