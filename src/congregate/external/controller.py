from __future__ import annotations

import io

from flask import Flask, jsonify, send_file

from ..attendance.controller import outcome_to_dict
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
from .model import ExternalCheckInSettings
from .qr import render_qr_png


def settings_to_dict(s: ExternalCheckInSettings) -> dict:
    return {
        "enabled": s.enabled,
        "url": s.url_token,
        "pin": s.pin,
        "fullUrl": s.full_url,
    }


def register(app: Flask, container: Container) -> None:
    gateway = container.external_gateway

    # --- staff ---------------------------------------------------------------------------

    @app.route("/api/gatherings/<gathering_id>/external-checkin", methods=["GET"], endpoint="external_admin_view")
    @login_required
    def admin_view(gathering_id: str):
        try:
            return jsonify(settings_to_dict(gateway.admin_view(current_tenant_id(), gathering_id)))
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "get external check-in details")

    @app.route(
        "/api/gatherings/<gathering_id>/external-checkin/toggle", methods=["POST"], endpoint="external_toggle"
    )
    @admin_required
    def toggle(gathering_id: str):
        try:
            s = gateway.set_enabled(
                current_tenant_id(), gathering_id, json_body().get("enabled"), current_role=current_role()
            )
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "toggle external check-in")
        return jsonify({"success": True, **settings_to_dict(s)})

    @app.route("/api/gatherings/<gathering_id>/external-checkin/qr.png", methods=["GET"], endpoint="external_qr")
    @login_required
    def qr_image(gathering_id: str):
        try:
            s = gateway.admin_view(current_tenant_id(), gathering_id)
            if not s.enabled or not s.full_url:
                return jsonify({"success": False, "message": "External check-in is not enabled"}), 404
            png = render_qr_png(s.full_url)
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "generate QR code")
        return send_file(io.BytesIO(png), mimetype="image/png")

    # --- public (no session) -------------------------------------------------------------

    @app.route("/api/external-checkin/<url_token>", methods=["GET"], endpoint="external_public_view")
    def public_view(url_token: str):
        try:
            info = gateway.describe(url_token)
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "load external check-in page")
        return jsonify(
            {
                "eventId": info.gathering_id,
                "eventName": info.name,
                "eventType": info.gathering_type,
                "location": info.location,
                "churchName": info.church_name,
                "churchBrandColor": info.church_brand_color,
                "requiresPin": info.requires_pin,
            }
        )

    @app.route("/api/external-checkin/<url_token>/checkin", methods=["POST"], endpoint="external_public_checkin")
    def public_check_in(url_token: str):
        try:
            data = json_body()
            outcome = gateway.submit(url_token, str(data.get("pin") or ""), str(data.get("memberId") or ""))
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "process check-in")

        body = {"success": True, **outcome_to_dict(outcome)}
        if outcome.accepted:
            body["message"] = f"Check-in successful for {outcome.display_name}"
            return jsonify(body), 201
        body["isDuplicate"] = True
        body["message"] = "You have already checked in to this event today"
        return jsonify(body), 200
