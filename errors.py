"""
errors.py
Rejections raised by the core, plus the kinds of silent no-ops.
"""

from __future__ import annotations

from enum import Enum


class DashboardError(Exception):
    kind = "error"


class ValidationError(DashboardError):
    """A required field is missing or a value is out of range."""

    kind = "validation"


class InvalidTransition(DashboardError):
    """Attempt to edit a payment slot that is already paid (locked)."""

    kind = "transition"


class SkipReason(str, Enum):
    """Why a referral operation did nothing."""

    SELF_REFERRAL = "self_referral"
    REFERRER_NOT_FOUND = "referrer_not_found"
    REFERRED_NOT_FOUND = "referred_not_found"
    ALREADY_REFERRED = "already_referred"
    CUSTOMER_NOT_FOUND = "customer_not_found"
