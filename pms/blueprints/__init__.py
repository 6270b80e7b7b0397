"""
IPP Performance Tracker
Blueprint registry and shared request helpers.
"""

from flask import g, request

from pms.core.actor import ActorContext
from pms.utils.errors import MalformedRequest, Unauthenticated
from pms.utils.helpers import normalize_payload


def require_actor() -> ActorContext:
    """Actor resolved by the JWT middleware, or Unauthenticated."""
    actor = getattr(g, "actor", None)
    if actor is None:
        raise Unauthenticated("Authentication required")
    return actor


def json_body(*, aliases: dict | None = None) -> dict:
    """Parsed and wire-name-normalized JSON object body.

    An absent body is an empty object; anything that is not a JSON object
    raises MalformedRequest.
    """
    if not request.data:
        return {}
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise MalformedRequest("Request body must be a JSON object")
    return normalize_payload(data, aliases=aliases)


def required_field(data: dict, field: str):
    if data.get(field) in (None, ""):
        raise MalformedRequest(f"{field} is required", field=field)
    return data[field]


def int_arg(name: str):
    """Optional integer query parameter; junk raises MalformedRequest."""
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise MalformedRequest(f"{name} must be an integer", field=name) from exc
