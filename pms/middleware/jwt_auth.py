"""
JWT Auth Middleware — resolves the Bearer token into ``g.actor``.

    Authorization: Bearer <token>  →  g.actor = ActorContext(npk, role)
    missing / invalid / expired    →  g.actor = None

The middleware never rejects a request itself; blueprints call
require_actor() and answer 401 when no actor was resolved. Services
receive the actor as an argument and never read ``g``.
"""

import logging

import jwt as pyjwt
from flask import g, request

from pms.core.actor import ActorContext
from pms.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.actor = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        if path.startswith(JWT_SKIP_PREFIXES):
            return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]
        try:
            payload = decode_access_token(token)
            g.actor = ActorContext(npk=str(payload["sub"]), role=payload["role"])
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired token on %s", path, extra={"event_type": "auth.expired"})
        except pyjwt.InvalidTokenError as exc:
            logger.warning("Invalid token on %s: %s", path, exc, extra={"event_type": "auth.invalid"})
        except ValueError as exc:
            # ActorContext rejects unknown roles
            logger.warning("Token carries bad claims on %s: %s", path, exc, extra={"event_type": "auth.invalid"})
