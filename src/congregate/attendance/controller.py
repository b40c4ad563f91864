from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.validators import optional_iso_date
from ..common.web import (
    admin_required,
    current_role,
    current_tenant_id,
    error_response,
    json_body,
    login_required,
    unexpected_error,
)
from ..container import Container
from ..core.enums import CheckInMethod
from ..core.exceptions import DomainError, ValidationError
from ..members.model import Unidentified
from .model import AttendanceRecord, CheckInOutcome, FamilyCheckInResult, parse_person_reference


def record_to_dict(r: AttendanceRecord) -> dict:
    return {
        "id": r.record_id,
        "gatheringId": r.gathering_id,
        "memberId": r.member_id,
        "visitorId": r.visitor_id,
        "attendanceDate": r.attendance_date.isoformat(),
        "checkInMethod": r.check_in_method.value,
        "checkInTime": r.checked_in_at.isoformat(),
        "isGuest": r.is_guest,
        "visitorName": r.visitor_name,
    }


def outcome_to_dict(o: CheckInOutcome) -> dict:
    return {
        "status": o.status.value,
        "name": o.display_name,
        "record": record_to_dict(o.record),
    }


def family_result_to_dict(result: FamilyCheckInResult) -> dict:
    return {
        "success": True,
        "head": {"id": result.head.member_id, "name": result.head.display_name},
        "headOutcome": outcome_to_dict(result.head_outcome) if result.head_outcome else None,
        "checkedIn": [outcome_to_dict(o) for o in result.checked_in],
        "skipped": [outcome_to_dict(o) for o in result.skipped],
    }


def _check_in_response(outcome: CheckInOutcome):
    body = {"success": True, **outcome_to_dict(outcome)}
    if outcome.accepted:
        body["message"] = f"Check-in successful for {outcome.display_name}"
        return jsonify(body), 201
    body["message"] = f"{outcome.display_name} already checked in at {outcome.record.checked_in_at.isoformat()}"
    return jsonify(body), 200


def register(app: Flask, container: Container) -> None:
    svc = container.check_in_service

    @app.route("/api/checkin", methods=["POST"], endpoint="attendance_check_in")
    @login_required
    def check_in():
        try:
            data = json_body()
            method_raw = data.get("method") or CheckInMethod.MANUAL.value
            try:
                method = CheckInMethod(str(method_raw).lower())
            except ValueError:
                raise ValidationError(f"Unknown check-in method: {method_raw}")
            if method == CheckInMethod.EXTERNAL:
                raise ValidationError("External check-in is only available through the public check-in link")
            outcome = svc.check_in(
                current_tenant_id(),
                parse_person_reference(data),
                gathering_id=data.get("gatheringId"),
                method=method,
            )
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "check in")
        return _check_in_response(outcome)

    @app.route("/api/checkin/biometric", methods=["POST"], endpoint="attendance_check_in_biometric")
    @login_required
    def check_in_biometric():
        try:
            data = json_body()
            result = svc.check_in_biometric(
                current_tenant_id(),
                str(data.get("token") or ""),
                gathering_id=data.get("gatheringId"),
            )
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "check in")

        if isinstance(result, Unidentified):
            return (
                jsonify(
                    {
                        "success": False,
                        "status": "unidentified",
                        "message": "Fingerprint not recognised. Enroll this person or search by name.",
                        "token": result.raw_credential,
                    }
                ),
                404,
            )
        return _check_in_response(result)

    @app.route("/api/checkin/family", methods=["POST"], endpoint="attendance_check_in_family")
    @login_required
    def check_in_family():
        try:
            data = json_body()
            child_ids = data.get("childIds")
            if child_ids is not None and not isinstance(child_ids, list):
                raise ValidationError("childIds must be a list")
            result = svc.check_in_family(
                current_tenant_id(),
                str(data.get("headId") or data.get("memberId") or ""),
                child_ids=child_ids,
                include_head=bool(data.get("includeHead", False)),
                gathering_id=data.get("gatheringId"),
            )
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "check in family")
        return jsonify(family_result_to_dict(result))

    @app.route("/api/attendance/historical", methods=["POST"], endpoint="attendance_historical")
    @admin_required
    def record_historical():
        try:
            data = json_body()
            attendance_date = optional_iso_date(data.get("attendanceDate"), "Attendance date")
            if attendance_date is None:
                raise ValidationError("Attendance date is required")
            outcome = svc.record_historical(
                current_tenant_id(),
                parse_person_reference(data),
                attendance_date=attendance_date,
                gathering_id=data.get("gatheringId"),
                current_role=current_role(),
            )
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "record attendance")
        return _check_in_response(outcome)

    @app.route("/api/attendance/<record_id>", methods=["DELETE"], endpoint="attendance_delete")
    @admin_required
    def delete_record(record_id: str):
        try:
            svc.delete_record(current_tenant_id(), record_id, current_role=current_role())
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "delete attendance record")
        return jsonify({"success": True})

    @app.route("/api/gatherings/<gathering_id>/attendance", methods=["GET"], endpoint="attendance_for_gathering")
    @login_required
    def list_for_gathering(gathering_id: str):
        try:
            day = optional_iso_date(request.args.get("date"), "date")
            records = svc.list_for_gathering(current_tenant_id(), gathering_id, attendance_date=day)
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "load attendance")
        return jsonify({"records": [record_to_dict(r) for r in records]})
