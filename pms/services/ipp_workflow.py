"""
IPP Workflow State Machine.

Two independent machines share the Ipp record, plus the per-month sign-off:

    Submission (owner):      draft ──submit──▶ submitted            (irreversible)
    Verify (reviewer):       PENDING ──▶ VERIFIED | REJECTED        (terminal once set)
    Approval (reviewer):     PENDING ──▶ APPROVED | REJECTED        (needs verify == VERIFIED)
    MonthlyApproval (reviewer, per month):
                             PENDING ──▶ APPROVED ⇄ REJECTED        (freely toggleable)

Reviewer = OPERATION or ADMIN. REJECTED on either IPP-level machine ends
the workflow for that plan. APPROVED unlocks the executive summary.

All permission logic lives in the IPP_TRANSITIONS table and is read through
one predicate, can_transition(actor, ipp, transition). Enforcement checks
the role first (ForbiddenError) and the stage second (StateError) so the
caller can always tell which of the two blocked it.

Usage:
    from pms.services.ipp_workflow import submit_ipp, set_verify, set_approval

    submit_ipp(actor, "IPP-2025-001")
    set_verify(reviewer, "IPP-2025-001", "VERIFIED")
    set_approval(reviewer, "IPP-2025-001", "APPROVED")
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pms.core.actor import ActorContext
from pms.core.exceptions import ForbiddenError, StateError, ValidationError
from pms.models import REVIEWER_ROLES
from pms.models.ipp import Ipp
from pms.services import weight_allocator
from pms.services.helpers.scoped_queries import get_ipp, get_monthly_approval
from pms.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)


# ── Stage guards ─────────────────────────────────────────────────────────────


def _draft_block(ipp: Ipp) -> str | None:
    if not ipp.is_draft:
        return "IPP has already been submitted"
    return None


def _verify_block(ipp: Ipp) -> str | None:
    if ipp.is_draft:
        return "IPP has not been submitted yet"
    if ipp.verify != "PENDING":
        return f"verification is already {ipp.verify}"
    return None


def _approval_block(ipp: Ipp) -> str | None:
    if ipp.is_draft:
        return "IPP has not been submitted yet"
    if ipp.verify == "REJECTED":
        return "IPP verification has been rejected"
    if ipp.verify != "VERIFIED":
        return "IPP must be VERIFIED before approval"
    if ipp.approval != "PENDING":
        return f"approval is already {ipp.approval}"
    return None


def _never_blocked(ipp: Ipp) -> str | None:
    return None


# transition → who may fire it and which stage allows it.
#   roles:   None = any role
#   owner:   True = only the plan owner
#   block:   returns None when the stage allows the transition, else the reason
#   field / to: the Ipp column written and its new value
IPP_TRANSITIONS = {
    "submit": {"roles": None, "owner": True, "block": _draft_block},
    "verify": {"roles": REVIEWER_ROLES, "owner": False, "block": _verify_block,
               "field": "verify", "to": "VERIFIED"},
    "reject_verify": {"roles": REVIEWER_ROLES, "owner": False, "block": _verify_block,
                      "field": "verify", "to": "REJECTED"},
    "approve": {"roles": REVIEWER_ROLES, "owner": False, "block": _approval_block,
                "field": "approval", "to": "APPROVED"},
    "reject_approval": {"roles": REVIEWER_ROLES, "owner": False, "block": _approval_block,
                        "field": "approval", "to": "REJECTED"},
    "monthly_approval": {"roles": REVIEWER_ROLES, "owner": False, "block": _never_blocked},
}

_VERIFY_ACTIONS = {"VERIFIED": "verify", "REJECTED": "reject_verify"}
_APPROVAL_ACTIONS = {"APPROVED": "approve", "REJECTED": "reject_approval"}
MONTHLY_APPROVAL_TARGETS = frozenset({"APPROVED", "REJECTED"})


# ── Predicates ───────────────────────────────────────────────────────────────


def _rule(transition: str) -> dict:
    rule = IPP_TRANSITIONS.get(transition)
    if rule is None:
        raise ValueError(f"Unknown transition: {transition}")
    return rule


def role_allows(actor: ActorContext, ipp: Ipp, transition: str) -> bool:
    rule = _rule(transition)
    if rule["roles"] is not None and actor.role not in rule["roles"]:
        return False
    if rule["owner"] and not actor.owns(ipp):
        return False
    return True


def stage_block(ipp: Ipp, transition: str) -> str | None:
    """Reason the current stage forbids the transition, or None."""
    return _rule(transition)["block"](ipp)


def can_transition(actor: ActorContext, ipp: Ipp, transition: str) -> bool:
    """Single source of truth for 'may this actor do this now?'."""
    return role_allows(actor, ipp, transition) and stage_block(ipp, transition) is None


def available_transitions(actor: ActorContext, ipp: Ipp) -> list[str]:
    return [t for t in IPP_TRANSITIONS if can_transition(actor, ipp, t)]


def require_role(actor: ActorContext, ipp: Ipp, transition: str) -> None:
    if not role_allows(actor, ipp, transition):
        rule = _rule(transition)
        required = "plan owner" if rule["owner"] else "/".join(sorted(rule["roles"]))
        raise ForbiddenError(actor.npk, transition, required)


def authorize(actor: ActorContext, ipp: Ipp, transition: str) -> None:
    """Raise ForbiddenError (role) or StateError (stage) if not allowed."""
    require_role(actor, ipp, transition)
    reason = stage_block(ipp, transition)
    if reason:
        raise StateError(
            f"Ipp {ipp.id}",
            transition,
            f"verify={ipp.verify}, approval={ipp.approval}",
            reason,
        )


def status_message(ipp: Ipp) -> str:
    """Reviewer banner describing where the plan sits in the workflow."""
    if ipp.is_draft:
        return "IPP has not been submitted yet. Actions will be available after submission."
    if ipp.verify == "REJECTED":
        return "IPP verification has been rejected. No further actions available."
    if ipp.approval == "REJECTED":
        return "IPP approval has been rejected. No further actions available."
    if ipp.verify == "PENDING":
        return "IPP is waiting for verification."
    if ipp.approval == "PENDING":
        return "IPP has been verified and is waiting for approval."
    return "IPP has been fully processed (verified and approved)."


# ── Transitions ──────────────────────────────────────────────────────────────


def _log_transition(actor: ActorContext, ipp_id: str, transition: str, previous: str, new: str) -> None:
    logger.info(
        "IPP %s %s: %s -> %s",
        ipp_id, transition, previous, new,
        extra={
            "ipp_id": ipp_id,
            "npk": actor.npk,
            "role": actor.role,
            "event_type": f"ipp.{transition}",
        },
    )


def submit_ipp(actor: ActorContext, ipp_id: str) -> dict:
    """
    Submit a draft IPP for review.

    Preconditions:
        - actor owns the IPP and it is still a draft
        - every activity has a non-empty code
        - weight allocation passes (category limits and 100 % total)

    Returns:
        {"ipp_id", "submitted_at", "previous_status", "new_status"}

    Raises:
        ForbiddenError, StateError, ValidationError, WeightError
    """
    ipp = get_ipp(ipp_id)
    authorize(actor, ipp, "submit")

    activities = list(ipp.activities)
    missing_code = [a.id for a in activities if not (a.code or "").strip()]
    if missing_code:
        raise ValidationError(
            "Every activity must have a code before submission",
            details={"activity_ids": missing_code},
        )
    weight_allocator.validate(activities, ipp.category)

    ipp.submitted_at = datetime.now(timezone.utc)
    commit_or_raise("submit_ipp")

    _log_transition(actor, ipp.id, "submit", "draft", "submitted")
    return {
        "ipp_id": ipp.id,
        "submitted_at": ipp.submitted_at.isoformat(),
        "previous_status": "draft",
        "new_status": "submitted",
    }


def _apply(actor: ActorContext, ipp: Ipp, transition: str) -> dict:
    authorize(actor, ipp, transition)

    rule = IPP_TRANSITIONS[transition]
    field = rule["field"]
    previous = getattr(ipp, field)
    setattr(ipp, field, rule["to"])
    commit_or_raise(transition)

    _log_transition(actor, ipp.id, transition, previous, rule["to"])
    return {
        "ipp_id": ipp.id,
        "field": field,
        "previous_status": previous,
        "new_status": rule["to"],
        "action": transition,
    }


def set_verify(actor: ActorContext, ipp_id: str, status: str) -> dict:
    """Reviewer verdict on a submitted IPP: VERIFIED or REJECTED."""
    ipp = get_ipp(ipp_id)
    require_role(actor, ipp, "verify")
    transition = _VERIFY_ACTIONS.get(status)
    if transition is None:
        raise ValidationError(
            f"Invalid verify status '{status}'",
            details={"status": status, "allowed": sorted(_VERIFY_ACTIONS)},
        )
    return _apply(actor, ipp, transition)


def set_approval(actor: ActorContext, ipp_id: str, status: str) -> dict:
    """Final sign-off on a verified IPP: APPROVED or REJECTED."""
    ipp = get_ipp(ipp_id)
    require_role(actor, ipp, "approve")
    transition = _APPROVAL_ACTIONS.get(status)
    if transition is None:
        raise ValidationError(
            f"Invalid approval status '{status}'",
            details={"status": status, "allowed": sorted(_APPROVAL_ACTIONS)},
        )
    return _apply(actor, ipp, transition)


def set_monthly_approval(actor: ActorContext, monthly_approval_id: int, status: str) -> dict:
    """
    Set one month's sign-off to APPROVED or REJECTED.

    Independent of the IPP-level verify/approval state and freely
    toggleable between APPROVED and REJECTED. Returning a month to
    PENDING is not supported.
    """
    row = get_monthly_approval(monthly_approval_id)
    require_role(actor, row.ipp, "monthly_approval")
    if status not in MONTHLY_APPROVAL_TARGETS:
        raise ValidationError(
            f"Invalid monthly approval status '{status}'",
            details={"status": status, "allowed": sorted(MONTHLY_APPROVAL_TARGETS)},
        )
    authorize(actor, row.ipp, "monthly_approval")

    previous = row.approval
    row.approval = status
    commit_or_raise("set_monthly_approval")

    logger.info(
        "Monthly approval %s/%s: %s -> %s",
        row.ipp_id, row.month, previous, status,
        extra={
            "ipp_id": row.ipp_id,
            "npk": actor.npk,
            "role": actor.role,
            "event_type": "ipp.monthly_approval",
        },
    )
    return row.to_dict()
