"""Identity resolution for check-in credentials.

Biometric tokens are exact-match only. Manual lookup returns candidates;
staff still pick one explicitly (``ManualSelection``). External self-service
resolves inside the external gateway, not here.
"""
from __future__ import annotations

from typing import Sequence, Union

from ..core.constants import DEFAULT_SEARCH_LIMIT
from .model import BiometricCredential, Identified, Invalid, ManualSelection, Member, Unidentified
from .repository import MemberRepository

Resolution = Union[Identified, Unidentified, Invalid]
Credential = Union[BiometricCredential, ManualSelection]


class IdentityResolver:
    def __init__(self, members: MemberRepository):
        self._members = members

    def resolve(self, tenant_id: str, credential: Credential) -> Resolution:
        if isinstance(credential, BiometricCredential):
            return self.resolve_biometric(tenant_id, credential.token)
        if isinstance(credential, ManualSelection):
            return self.resolve_selection(tenant_id, credential.member_id)
        return Invalid(f"Unsupported credential: {type(credential).__name__}")

    def resolve_biometric(self, tenant_id: str, token: str) -> Resolution:
        raw = (token or "").strip()
        if not raw:
            return Invalid("Empty biometric token")

        member = self._members.get_by_biometric_token(tenant_id, raw)
        if member is None:
            # Never auto-create a visitor here; caller may offer enrollment.
            return Unidentified(raw)
        if not member.is_current_member:
            return Invalid("Member is no longer active")
        return Identified(member)

    def resolve_selection(self, tenant_id: str, member_id: str) -> Resolution:
        member_id = (member_id or "").strip()
        if not member_id:
            return Invalid("No member selected")

        member = self._members.get_by_id(tenant_id, member_id)
        if member is None:
            return Invalid("Member not found")
        return Identified(member)

    def search(self, tenant_id: str, query: str, *, limit: int = DEFAULT_SEARCH_LIMIT) -> Sequence[Member]:
        q = (query or "").strip()
        if len(q) < 2:
            return []
        return list(self._members.search(tenant_id, q, max(1, min(int(limit), 100))))
