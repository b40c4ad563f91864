from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import AgeGroup, Gender, RelationshipToHead
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import Member
from .repository import MemberRepository

_COLUMNS = """
    member_id, tenant_id, first_name, surname, gender, age_group, phone, email, date_of_birth,
    biometric_token, family_group_id, relationship_to_head, is_family_head, is_current_member
"""


def _row_to_member(r: dict) -> Member:
    return Member(
        member_id=str(r["member_id"]),
        tenant_id=str(r["tenant_id"]),
        first_name=r["first_name"],
        surname=r["surname"],
        gender=Gender(r["gender"]),
        age_group=AgeGroup(r["age_group"]),
        phone=r.get("phone"),
        email=r.get("email"),
        date_of_birth=r.get("date_of_birth"),
        biometric_token=r.get("biometric_token"),
        family_group_id=r.get("family_group_id"),
        relationship_to_head=RelationshipToHead(r["relationship_to_head"]) if r.get("relationship_to_head") else None,
        is_family_head=bool(r.get("is_family_head")),
        is_current_member=bool(r.get("is_current_member")),
    )


class MySQLMemberRepository(MemberRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, tenant_id: str, member_id: str) -> Optional[Member]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM members WHERE tenant_id=%s AND member_id=%s",
                (tenant_id, member_id),
            )
            r = fetchone(cur)
            return _row_to_member(r) if r else None

    def get_by_biometric_token(self, tenant_id: str, token: str) -> Optional[Member]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM members WHERE tenant_id=%s AND biometric_token=%s",
                (tenant_id, token),
            )
            r = fetchone(cur)
            return _row_to_member(r) if r else None

    def create(self, member: Member) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO members({_COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    member.member_id,
                    member.tenant_id,
                    member.first_name,
                    member.surname,
                    member.gender.value,
                    member.age_group.value,
                    member.phone,
                    member.email,
                    member.date_of_birth,
                    member.biometric_token,
                    member.family_group_id,
                    member.relationship_to_head.value if member.relationship_to_head else None,
                    int(member.is_family_head),
                    int(member.is_current_member),
                ),
            )

    def update(self, member: Member) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE members
                SET first_name=%s, surname=%s, gender=%s, age_group=%s, phone=%s, email=%s, date_of_birth=%s,
                    family_group_id=%s, relationship_to_head=%s, is_family_head=%s, is_current_member=%s
                WHERE tenant_id=%s AND member_id=%s
                """,
                (
                    member.first_name,
                    member.surname,
                    member.gender.value,
                    member.age_group.value,
                    member.phone,
                    member.email,
                    member.date_of_birth,
                    member.family_group_id,
                    member.relationship_to_head.value if member.relationship_to_head else None,
                    int(member.is_family_head),
                    int(member.is_current_member),
                    member.tenant_id,
                    member.member_id,
                ),
            )
            return cur.rowcount > 0

    def set_biometric_token(self, tenant_id: str, member_id: str, token: str) -> bool:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    "UPDATE members SET biometric_token=%s WHERE tenant_id=%s AND member_id=%s",
                    (token, tenant_id, member_id),
                )
                return cur.rowcount > 0
        except Exception as exc:
            if is_duplicate_key(exc):
                raise ConflictError("This credential is already enrolled for another member") from exc
            raise

    def list_family(self, tenant_id: str, family_group_id: str) -> Sequence[Member]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM members
                WHERE tenant_id=%s AND family_group_id=%s
                ORDER BY is_family_head DESC, first_name ASC
                """,
                (tenant_id, family_group_id),
            )
            return [_row_to_member(r) for r in fetchall(cur)]

    def search(self, tenant_id: str, query: str, limit: int) -> Sequence[Member]:
        like = f"%{query.strip().lower()}%"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM members
                WHERE tenant_id=%s AND is_current_member=1
                  AND (LOWER(first_name) LIKE %s OR LOWER(surname) LIKE %s
                       OR LOWER(CONCAT(first_name, ' ', surname)) LIKE %s)
                ORDER BY surname ASC, first_name ASC
                LIMIT %s
                """,
                (tenant_id, like, like, like, int(limit)),
            )
            return [_row_to_member(r) for r in fetchall(cur)]

    def list_current(self, tenant_id: str) -> Sequence[Member]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM members WHERE tenant_id=%s AND is_current_member=1",
                (tenant_id,),
            )
            return [_row_to_member(r) for r in fetchall(cur)]

    def count_for_tenant(self, tenant_id: str) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COUNT(*) AS n FROM members WHERE tenant_id=%s AND is_current_member=1",
                (tenant_id,),
            )
            r = fetchone(cur)
            return int(r["n"]) if r else 0
