from __future__ import annotations

from flask import Flask, jsonify

from ..common.datetime_utils import local_today
from ..common.validators import require_enum
from ..common.web import (
    admin_required,
    current_tenant_id,
    error_response,
    json_body,
    login_required,
    unexpected_error,
)
from ..container import Container
from ..core.enums import ContactMethod
from ..core.exceptions import DomainError
from .model import FollowUpRecord


def record_to_dict(r: FollowUpRecord) -> dict:
    return {
        "memberId": r.member_id,
        "lastContactDate": r.last_contact_at.isoformat() if r.last_contact_at else None,
        "contactMethod": r.contact_method.value if r.contact_method else None,
        "consecutiveAbsences": r.consecutive_absences,
        "needsFollowUp": r.needs_follow_up,
        "lastAttendanceDate": r.last_attendance_date.isoformat() if r.last_attendance_date else None,
    }


def register(app: Flask, container: Container) -> None:
    tracker = container.follow_up_tracker

    @app.route("/api/follow-up", methods=["GET"], endpoint="follow_up_queue")
    @login_required
    def queue():
        try:
            tenant = container.tenant_service.get(current_tenant_id())
            items = tracker.needing_follow_up(tenant.tenant_id)
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "load follow-up queue")

        today = local_today(tenant.timezone)
        return jsonify(
            {
                "members": [
                    {
                        "id": item.member.member_id,
                        "fullName": item.member.display_name,
                        "phone": item.member.phone,
                        "email": item.member.email,
                        "daysSinceAttendance": item.record.days_since_attendance(today),
                        **record_to_dict(item.record),
                    }
                    for item in items
                ]
            }
        )

    @app.route("/api/follow-up/<member_id>/contact", methods=["POST"], endpoint="follow_up_contact")
    @login_required
    def record_contact(member_id: str):
        try:
            data = json_body()
            outcome = tracker.record_contact(
                current_tenant_id(),
                member_id,
                require_enum(ContactMethod, data.get("method"), "Contact method"),
                message=str(data.get("message") or ""),
            )
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "record follow-up")
        return jsonify(
            {
                "success": True,
                "followUp": record_to_dict(outcome.record),
                "notificationSent": outcome.notification_sent,
            }
        )

    @app.route("/api/follow-up/scan", methods=["POST"], endpoint="follow_up_scan")
    @admin_required
    def scan():
        try:
            summary = tracker.scan_absences(current_tenant_id())
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "scan absences")
        return jsonify(
            {
                "success": True,
                "scanDate": summary.scan_date.isoformat(),
                "scanned": summary.scanned,
                "incremented": summary.incremented,
                "reset": summary.reset,
                "skipped": summary.skipped,
                "baselined": summary.baselined,
                "flagged": summary.flagged,
            }
        )
