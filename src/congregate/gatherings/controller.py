from __future__ import annotations

from flask import Flask, jsonify, request

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
from ..core.exceptions import DomainError
from .model import Gathering, NewGathering


def gathering_to_dict(g: Gathering) -> dict:
    return {
        "id": g.gathering_id,
        "name": g.name,
        "type": g.gathering_type,
        "location": g.location,
        "startsAt": g.starts_at.isoformat() if g.starts_at else None,
        "endsAt": g.ends_at.isoformat() if g.ends_at else None,
        "isActive": g.is_active,
        "externalCheckInEnabled": g.external_checkin_enabled,
    }


def register(app: Flask, container: Container) -> None:
    svc = container.gathering_service

    @app.route("/api/gatherings", methods=["GET"], endpoint="gatherings_list")
    @login_required
    def list_gatherings():
        active_only = request.args.get("active") in {"1", "true", "yes"}
        try:
            items = svc.list_gatherings(current_tenant_id(), active_only=active_only)
        except Exception as e:
            return unexpected_error(e, "load gatherings")
        return jsonify({"gatherings": [gathering_to_dict(g) for g in items]})

    @app.route("/api/gatherings", methods=["POST"], endpoint="gatherings_create")
    @admin_required
    def create_gathering():
        try:
            g = svc.create(current_tenant_id(), NewGathering.from_payload(json_body()), current_role=current_role())
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "create gathering")
        return jsonify({"success": True, "gathering": gathering_to_dict(g)}), 201

    @app.route("/api/gatherings/<gathering_id>/active", methods=["PUT"], endpoint="gatherings_set_active")
    @admin_required
    def set_active(gathering_id: str):
        try:
            active = json_body().get("active")
            if not isinstance(active, bool):
                return jsonify({"success": False, "message": "active must be a boolean"}), 400
            g = svc.set_active(current_tenant_id(), gathering_id, active, current_role=current_role())
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "update gathering")
        return jsonify({"success": True, "gathering": gathering_to_dict(g)})
