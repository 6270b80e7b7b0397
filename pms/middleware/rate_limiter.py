"""
Rate limiting configuration.

The Limiter instance is created in pms/__init__.py with no default limits;
this module applies limits per blueprint. Keys are the authenticated NPK
when a token was presented, else the remote IP.

Usage:
    from pms.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"


def actor_or_ip_key():
    """Rate limit key: actor NPK if authenticated, else remote IP."""
    actor = getattr(g, "actor", None)
    if actor is not None:
        return f"npk:{actor.npk}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

        - IPP / achievement endpoints:  60/minute
        - Master data (read-mostly):    200/minute
        - Health check:                 exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("ipp", "achievement"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, key_func=actor_or_ip_key)(bp)

    bp = app.blueprints.get("master_data")
    if bp:
        limiter.limit(READ_LIMIT, key_func=actor_or_ip_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — ipp/achievement: %s, master data: %s", WRITE_LIMIT, READ_LIMIT)
