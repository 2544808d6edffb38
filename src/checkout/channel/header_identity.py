"""Identity adapter for deployments behind an authenticating proxy.

The proxy verifies the session and forwards the result in trusted headers;
requests without them are treated as guest checkouts.
"""

from checkout.channel.identity_port import IdentityProvider, VerifiedIdentity

SUBJECT_HEADER = "x-verified-subject"
EMAIL_HEADER = "x-verified-email"


class HeaderIdentityProvider(IdentityProvider):
    def verify(self, headers: dict[str, str]) -> VerifiedIdentity | None:
        normalized = {k.lower(): v for k, v in headers.items()}
        subject = (normalized.get(SUBJECT_HEADER) or "").strip()
        if not subject:
            return None
        email = (normalized.get(EMAIL_HEADER) or "").strip() or None
        return VerifiedIdentity(subject=subject, email=email)
