from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field

from campusconnect.core.modules.session.models import PrincipalKind
from campusconnect.web.tokens import ROLE_COOKIES

# Endpoints reachable without a session
PUBLIC_ENDPOINTS = {
    ("POST", "/api/v1/members/signup"),
    ("POST", "/api/v1/members/signin"),
    ("POST", "/api/v1/admins/signup"),
    ("POST", "/api/v1/admins/signin"),
    ("POST", "/api/v1/auth/logout"),
    ("GET", "/health"),
}


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="CampusConnect API",
            version="0.1.0",
            summary="Campus portal sessions for members and administrators",
            routes=app.routes,
        )

        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "BearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "description": "Session token for API clients",
            },
            "MemberCookie": {
                "type": "apiKey",
                "in": "cookie",
                "name": ROLE_COOKIES[PrincipalKind.MEMBER],
                "description": "Member session cookie set at sign-in",
            },
            "AdminCookie": {
                "type": "apiKey",
                "in": "cookie",
                "name": ROLE_COOKIES[PrincipalKind.ADMINISTRATOR],
                "description": "Administrator session cookie set at sign-in",
            },
        }

        # Apply security globally (will be overridden for public endpoints)
        openapi_schema["security"] = [
            {"BearerAuth": []},
            {"MemberCookie": []},
            {"AdminCookie": []},
        ]

        for path, path_item in openapi_schema["paths"].items():
            for method, operation in path_item.items():
                if (method.upper(), path) in PUBLIC_ENDPOINTS:
                    operation["security"] = []

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    success: bool = Field(False, description="Always false for errors")
    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"success": False, "message": "Invalid credentials.", "type": "authentication_error"},
                {"success": False, "message": "Session expired. Please sign in again.", "type": "session_expired"},
                {"success": False, "message": "Access denied.", "type": "access_denied"},
            ]
        }
    }
