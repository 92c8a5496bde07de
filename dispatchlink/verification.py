"""
Verification tiers for dispatchers and carrier-reference cross-checking.

Everything here is pure: tiers are recomputed from profile data on every read
and are never stored.
"""
import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, List, Optional

CARRIERSCOUT_VERIFIED = 'carrierscout_verified'
EXPERIENCE_VERIFIED = 'experience_verified'
BEGINNER = 'beginner'
UNVERIFIED = 'unverified'

VERIFICATION_TIERS = (CARRIERSCOUT_VERIFIED, EXPERIENCE_VERIFIED, BEGINNER, UNVERIFIED)

VERIFICATION_BADGES = {
    CARRIERSCOUT_VERIFIED: {
        'label': 'CarrierScout Verified',
        'bg_color': 'bg-emerald-50',
        'text_color': 'text-emerald-700',
        'border_color': 'border-emerald-200',
    },
    EXPERIENCE_VERIFIED: {
        'label': 'Experience Verified',
        'bg_color': 'bg-blue-50',
        'text_color': 'text-blue-700',
        'border_color': 'border-blue-200',
    },
    BEGINNER: {
        'label': 'New Dispatcher',
        'bg_color': 'bg-amber-50',
        'text_color': 'text-amber-700',
        'border_color': 'border-amber-200',
    },
    UNVERIFIED: {
        'label': 'Unverified',
        'bg_color': 'bg-gray-50',
        'text_color': 'text-gray-600',
        'border_color': 'border-gray-200',
    },
}

_NON_DIGITS = re.compile(r'[^0-9]')


@dataclass(frozen=True)
class CarrierRef:
    """A dispatcher's claim of having worked with a carrier."""

    carrier_name: str
    mc_number: str
    verified: bool = False
    agreement_file_name: Optional[str] = None
    agreement_uploaded_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, reference):
        return cls(
            carrier_name=reference.carrier_name,
            mc_number=reference.mc_number,
            verified=bool(reference.verified),
            agreement_file_name=reference.agreement_file_name,
            agreement_uploaded_at=reference.agreement_uploaded_at,
        )


def compute_verification_tier(years_experience=None, carriers_worked_with=None, carrier_scout_subscribed=None):
    """
    Classify a dispatcher into exactly one verification tier.

    The guards run in order and the first match wins, so a subscribed
    dispatcher with a verified carrier outranks the low-experience signal,
    and two or more years with no carriers lands on ``unverified`` rather
    than ``beginner``.
    """
    years = years_experience or 0
    carriers = list(carriers_worked_with or [])
    has_verified_carrier = any(ref.verified for ref in carriers)
    has_any_carrier = len(carriers) > 0

    if carrier_scout_subscribed and has_verified_carrier:
        return CARRIERSCOUT_VERIFIED
    if years >= 2 and has_any_carrier:
        return EXPERIENCE_VERIFIED
    if years <= 1:
        return BEGINNER
    return UNVERIFIED


def tier_for_user(user):
    """Compute the tier for a stored user row."""
    return compute_verification_tier(
        years_experience=user.years_experience,
        carriers_worked_with=[CarrierRef.from_model(ref) for ref in user.carrier_references],
        carrier_scout_subscribed=user.carrier_scout_subscribed,
    )


def get_verification_badge_info(tier):
    try:
        return dict(VERIFICATION_BADGES[tier])
    except KeyError as exc:
        raise ValueError(f"Unknown verification tier '{tier}'") from exc


def cross_reference_carriers(carrier_refs: Iterable[CarrierRef], known_identifiers: Iterable[str]) -> List[CarrierRef]:
    """
    Return copies of ``carrier_refs`` with ``verified`` set from the registry.

    Matching is a case-insensitive comparison of the whole identifier string,
    so ``mc123`` matches ``MC123`` but ``MC-123`` does not.
    """
    known = {identifier.upper() for identifier in known_identifiers}
    return [replace(ref, verified=ref.mc_number.upper() in known) for ref in carrier_refs]


def normalize_carrier_number(identifier: str) -> str:
    """Strip everything but digits. Used for duplicate detection only."""
    return _NON_DIGITS.sub('', identifier or '')


def format_carrier_identifier(value: Optional[str], prefix: str = 'MC') -> Optional[str]:
    """Canonical ``MC<digits>`` / ``DOT<digits>`` form for a registered number."""
    if value is None:
        return None
    value = str(value)
    digits = normalize_carrier_number(value)
    if not digits:
        return value.strip().upper() or None
    return f"{prefix}{digits}"


def find_duplicate_carrier(carrier_refs, identifier):
    target = normalize_carrier_number(identifier)
    if not target:
        return None
    for ref in carrier_refs:
        if normalize_carrier_number(ref.mc_number) == target:
            return ref
    return None
