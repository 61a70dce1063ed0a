"""
Contact validation policy evaluated before a reservation commits.
"""

import logging
from typing import Iterable, Optional, Protocol

from email_validator import EmailNotValidError, validate_email

from ..config import get_settings

logger = logging.getLogger(__name__)


class ContactValidator(Protocol):
    """
    Anything the reservation engine can ask whether a contact is acceptable.

    Validators may also define `rejection_reason(email, affiliation_tag)` to
    supply the user-facing message for a refused contact.
    """

    def validate(self, email: str, affiliation_tag: str) -> bool:
        ...


DEFAULT_REJECTION = "Contact email is not accepted for this reservation."


class ContactPolicy:
    """
    Syntactic email check plus a domain allow-list for restricted affiliations.

    Members of a restricted affiliation (students and staff by default) must
    use an address in one of the allowed domains; everyone else may use any
    syntactically valid address.
    """

    def __init__(
        self,
        restricted_affiliations: Optional[Iterable[str]] = None,
        allowed_domains: Optional[Iterable[str]] = None,
    ):
        settings = get_settings()
        if restricted_affiliations is None:
            restricted_affiliations = settings.restricted_affiliations
        if allowed_domains is None:
            allowed_domains = settings.allowed_email_domains
        self.restricted_affiliations = {a.strip().lower() for a in restricted_affiliations}
        self.allowed_domains = {d.strip().lower().lstrip("@") for d in allowed_domains}

    def is_restricted(self, affiliation_tag: str) -> bool:
        return (affiliation_tag or "").strip().lower() in self.restricted_affiliations

    def validate(self, email: str, affiliation_tag: str) -> bool:
        return self.rejection_reason(email, affiliation_tag) is None

    def rejection_reason(self, email: str, affiliation_tag: str) -> Optional[str]:
        """
        Explain why a contact email is refused by the policy.

        Args:
            email: Address that will receive the receipt
            affiliation_tag: Opaque classification supplied with the request

        Returns:
            None if the contact is acceptable, else the reason it was refused
        """
        try:
            normalized = validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            return f"Invalid contact email: {e}"

        if self.is_restricted(affiliation_tag):
            domain = normalized.domain.lower()
            if domain not in self.allowed_domains:
                allowed = " or ".join(f"@{d}" for d in sorted(self.allowed_domains))
                return f"{affiliation_tag.strip().capitalize()} reservations must use an {allowed} address."

        return None
