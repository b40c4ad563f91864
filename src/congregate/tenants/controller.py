from __future__ import annotations

from flask import Flask, jsonify, session

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
from ..core.constants import DEFAULT_KIOSK_TIMEOUT_MINUTES
from ..core.exceptions import DomainError


def register(app: Flask, container: Container) -> None:
    @app.route("/api/tenant/register", methods=["POST"], endpoint="tenant_register")
    def register_tenant():
        try:
            data = json_body()
            tenant, admin = container.tenant_service.register(
                church_name=data.get("churchName", ""),
                admin_email=data.get("email", ""),
                admin_password=data.get("password", ""),
                admin_full_name=data.get("fullName", ""),
                timezone=data.get("timezone") or "UTC",
                brand_color=data.get("brandColor"),
            )
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "register church")

        session.clear()
        session["staff_id"] = admin.staff_id
        session["tenant_id"] = tenant.tenant_id
        session["name"] = admin.full_name
        session["role"] = admin.role.value
        return (
            jsonify(
                {
                    "success": True,
                    "tenant": {
                        "id": tenant.tenant_id,
                        "name": tenant.name,
                        "subscriptionTier": tenant.subscription_tier.value,
                        "trialEndDate": tenant.trial_end.isoformat() if tenant.trial_end else None,
                    },
                }
            ),
            201,
        )

    @app.route("/api/tenant/features", methods=["GET"], endpoint="tenant_features")
    @login_required
    def features():
        return jsonify({"features": container.policy.feature_map(current_tenant_id())})

    @app.route("/api/tenant/usage", methods=["GET"], endpoint="tenant_usage")
    @login_required
    def usage():
        try:
            s = container.tenant_service.subscription_status(current_tenant_id())
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "get usage statistics")

        return jsonify(
            {
                "usage": {
                    "members": {
                        "current": s.member_count,
                        "limit": s.max_members,
                        "percentage": s.member_usage_percent,
                    },
                    "subscriptionTier": s.subscription_tier.value,
                    "isTrialActive": s.is_trial_active,
                    "trialDaysRemaining": s.trial_days_remaining,
                }
            }
        )

    @app.route("/api/tenant/kiosk-settings", methods=["GET"], endpoint="tenant_kiosk_get")
    @login_required
    def kiosk_get():
        try:
            tenant = container.tenant_service.get(current_tenant_id())
        except DomainError as e:
            return error_response(e)
        return jsonify(
            {
                "kioskModeEnabled": tenant.kiosk_mode_enabled,
                "kioskSessionTimeout": tenant.kiosk_session_timeout,
            }
        )

    @app.route("/api/tenant/kiosk-settings", methods=["PATCH"], endpoint="tenant_kiosk_update")
    @admin_required
    def kiosk_update():
        try:
            data = json_body()
            tenant = container.tenant_service.update_kiosk_settings(
                current_tenant_id(),
                enabled=bool(data.get("kioskModeEnabled", False)),
                timeout_minutes=data.get("kioskSessionTimeout", DEFAULT_KIOSK_TIMEOUT_MINUTES),
                current_role=current_role(),
            )
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "update kiosk settings")
        return jsonify(
            {
                "success": True,
                "kioskModeEnabled": tenant.kiosk_mode_enabled,
                "kioskSessionTimeout": tenant.kiosk_session_timeout,
            }
        )

    @app.route("/api/tenant/factory-reset", methods=["POST"], endpoint="tenant_factory_reset")
    @admin_required
    def factory_reset():
        try:
            data = json_body()
            if data.get("confirm") != "RESET":
                return jsonify({"success": False, "message": "Send {\"confirm\": \"RESET\"} to wipe tenant data"}), 400
            container.tenant_service.factory_reset(current_tenant_id(), current_role=current_role())
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "reset tenant data")
        return jsonify({"success": True})
