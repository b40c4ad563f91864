from __future__ import annotations

from flask import Flask, jsonify, session

from ..common.web import error_response, json_body, login_required, unexpected_error
from ..container import Container
from ..core.exceptions import DomainError


def register(app: Flask, container: Container) -> None:
    @app.route("/api/auth/login", methods=["POST"], endpoint="auth_login")
    def login():
        try:
            data = json_body()
            staff = container.auth_service.authenticate(data.get("email", ""), data.get("password", ""))
        except DomainError as e:
            return error_response(e)
        except Exception as e:
            return unexpected_error(e, "log in")

        session.clear()
        session["staff_id"] = staff.staff_id
        session["tenant_id"] = staff.tenant_id
        session["name"] = staff.full_name
        session["role"] = staff.role.value
        return jsonify(
            {
                "success": True,
                "staff": {
                    "id": staff.staff_id,
                    "tenantId": staff.tenant_id,
                    "fullName": staff.full_name,
                    "role": staff.role.value,
                },
            }
        )

    @app.route("/api/auth/logout", methods=["POST"], endpoint="auth_logout")
    def logout():
        session.clear()
        return jsonify({"success": True})

    @app.route("/api/auth/me", methods=["GET"], endpoint="auth_me")
    @login_required
    def me():
        return jsonify(
            {
                "id": session["staff_id"],
                "tenantId": session["tenant_id"],
                "fullName": session.get("name"),
                "role": session.get("role"),
            }
        )
