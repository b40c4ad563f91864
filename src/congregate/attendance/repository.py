from __future__ import annotations

from datetime import date, datetime
from typing import Mapping, Optional, Protocol, Sequence

from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    """Giao diện repository cho AttendanceRecord.

    Lưu ý (DIP): tầng service phụ thuộc vào interface này, không phụ thuộc trực tiếp DB cụ thể.
    """

    def insert_if_absent(self, record: AttendanceRecord) -> Optional[AttendanceRecord]:
        """Atomically insert unless a record with the same key exists.

        Returns the inserted record, or None when the uniqueness key was taken
        (including a race lost at write time).
        """

        raise NotImplementedError

    def get_by_key(self, dedupe_key: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_by_id(self, tenant_id: str, record_id: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def delete(self, tenant_id: str, record_id: str) -> bool:
        raise NotImplementedError

    def list_for_gathering(self, tenant_id: str, gathering_id: str, attendance_date: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def last_attendance_dates(self, tenant_id: str) -> Mapping[str, date]:
        """member_id -> most recent attendance date, for members with any attendance."""

        raise NotImplementedError

    def last_check_in_times(self, tenant_id: str) -> Mapping[str, datetime]:
        """member_id -> most recent ``checked_in_at``, for members with any attendance."""

        raise NotImplementedError
