from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.validators import require_enum
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
from ..core.enums import RelationshipToHead, VisitorFollowUpStatus
from ..core.exceptions import DomainError
from .model import Member, NewMember, NewVisitor, Visitor


def member_to_dict(m: Member) -> dict:
    return {
        "id": m.member_id,
        "firstName": m.first_name,
        "surname": m.surname,
        "fullName": m.display_name,
        "gender": m.gender.value,
        "ageGroup": m.age_group.value,
        "phone": m.phone,
        "email": m.email,
        "dateOfBirth": m.date_of_birth.isoformat() if m.date_of_birth else None,
        "hasBiometric": bool(m.biometric_token),
        "familyGroupId": m.family_group_id,
        "relationshipToHead": m.relationship_to_head.value if m.relationship_to_head else None,
        "isFamilyHead": m.is_family_head,
        "isCurrentMember": m.is_current_member,
    }


def visitor_to_dict(v: Visitor) -> dict:
    return {
        "id": v.visitor_id,
        "firstName": v.first_name,
        "surname": v.surname,
        "fullName": v.display_name,
        "gender": v.gender.value,
        "ageGroup": v.age_group.value,
        "phone": v.phone,
        "email": v.email,
        "howHeard": v.how_heard,
        "prayerPoints": v.prayer_points,
        "followUpStatus": v.follow_up_status.value,
        "promotedMemberId": v.promoted_member_id,
        "createdAt": v.created_at.isoformat() if v.created_at else None,
    }


def register(app: Flask, container: Container) -> None:
    svc = container.member_service

    @app.route("/api/members", methods=["GET"], endpoint="members_list")
    @login_required
    def list_members():
        query = (request.args.get("q") or "").strip()
        try:
            if query:
                members = container.identity.search(current_tenant_id(), query)
            else:
                members = svc.list_members(current_tenant_id())
        except Exception as e:
            return unexpected_error(e, "load members")
        return jsonify({"members": [member_to_dict(m) for m in members]})

    @app.route("/api/members", methods=["POST"], endpoint="members_create")
    @login_required
    def create_member():
        try:
            member = svc.create_member(current_tenant_id(), NewMember.from_payload(json_body()))
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "create member")
        return jsonify({"success": True, "member": member_to_dict(member)}), 201

    @app.route("/api/members/<member_id>", methods=["GET"], endpoint="members_get")
    @login_required
    def get_member(member_id: str):
        try:
            return jsonify(member_to_dict(svc.get_member(current_tenant_id(), member_id)))
        except DomainError as e:
            return error_response(e)

    @app.route("/api/members/<member_id>", methods=["PATCH"], endpoint="members_update")
    @login_required
    def update_member(member_id: str):
        try:
            member = svc.update_member(current_tenant_id(), member_id, json_body())
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "update member")
        return jsonify({"success": True, "member": member_to_dict(member)})

    @app.route("/api/members/<member_id>/retire", methods=["POST"], endpoint="members_retire")
    @admin_required
    def retire_member(member_id: str):
        try:
            member = svc.retire_member(current_tenant_id(), member_id)
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "retire member")
        return jsonify({"success": True, "member": member_to_dict(member)})

    @app.route("/api/members/<member_id>/family", methods=["GET"], endpoint="members_family")
    @login_required
    def family(member_id: str):
        try:
            head, others = svc.list_family(current_tenant_id(), member_id)
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "load family")
        return jsonify({"head": member_to_dict(head), "members": [member_to_dict(m) for m in others]})

    @app.route("/api/members/<member_id>/family", methods=["POST"], endpoint="members_link_family")
    @login_required
    def link_family(member_id: str):
        try:
            data = json_body()
            relationship = data.get("relationshipToHead")
            member = svc.link_to_family(
                current_tenant_id(),
                member_id,
                head_id=str(data.get("headId") or ""),
                relationship=require_enum(RelationshipToHead, relationship, "Relationship") if relationship else None,
            )
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "link family member")
        return jsonify({"success": True, "member": member_to_dict(member)})

    @app.route("/api/members/<member_id>/biometric", methods=["POST"], endpoint="members_enroll_biometric")
    @login_required
    def enroll_biometric(member_id: str):
        try:
            member = svc.enroll_biometric(current_tenant_id(), member_id, str(json_body().get("token") or ""))
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "enroll biometric")
        return jsonify({"success": True, "member": member_to_dict(member)})

    # --- visitors ---------------------------------------------------------------------------

    @app.route("/api/visitors", methods=["GET"], endpoint="visitors_list")
    @login_required
    def list_visitors():
        status = request.args.get("status")
        try:
            visitors = svc.list_visitors(
                current_tenant_id(),
                status=require_enum(VisitorFollowUpStatus, status, "Status") if status else None,
            )
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "load visitors")
        return jsonify({"visitors": [visitor_to_dict(v) for v in visitors]})

    @app.route("/api/visitors", methods=["POST"], endpoint="visitors_create")
    @login_required
    def create_visitor():
        try:
            visitor = svc.create_visitor(current_tenant_id(), NewVisitor.from_payload(json_body()))
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "create visitor")
        return jsonify({"success": True, "visitor": visitor_to_dict(visitor)}), 201

    @app.route("/api/visitors/<visitor_id>/status", methods=["PATCH"], endpoint="visitors_status")
    @login_required
    def visitor_status(visitor_id: str):
        try:
            status = require_enum(VisitorFollowUpStatus, json_body().get("status"), "Status")
            visitor = svc.update_visitor_status(current_tenant_id(), visitor_id, status)
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "update visitor")
        return jsonify({"success": True, "visitor": visitor_to_dict(visitor)})

    @app.route("/api/visitors/<visitor_id>/promote", methods=["POST"], endpoint="visitors_promote")
    @admin_required
    def promote_visitor(visitor_id: str):
        try:
            member = svc.promote_visitor(current_tenant_id(), visitor_id, current_role=current_role())
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "promote visitor")
        return jsonify({"success": True, "member": member_to_dict(member)}), 201
