"""
Dépendance d'authentification admin
===================================

Objectif
--------
Fournir une *dependency* FastAPI `admin_required` qui protège les routes de maintenance
(`/admin/sweep`, `/admin/cleanup`) via un **Bearer token** (`settings.ADMIN_TOKEN`).

Pourquoi accepter le préflight CORS ?
-------------------------------------
Le navigateur envoie une requête **OPTIONS** sans header `Authorization`. La protection est
donc posée au niveau DES ROUTES (pas du router) et le préflight est géré par le middleware CORS.

Comportement & codes retour
---------------------------
- 401 si aucun Bearer n'est fourni.
- 403 si le Bearer fourni ne correspond pas à `ADMIN_TOKEN`.
- True sinon.
"""
from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from jetoni.config.settings import settings

# Schéma Bearer (désactive l'erreur auto pour qu'on rende nos 401/403)
bearer = HTTPBearer(auto_error=False)


def admin_required(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> bool:
    if credentials and (credentials.scheme or "").lower() == "bearer":
        if secrets.compare_digest(credentials.credentials, settings.ADMIN_TOKEN):
            return True
        raise HTTPException(status_code=403, detail="Invalid token")
    raise HTTPException(status_code=401, detail="Admin authentication required")
