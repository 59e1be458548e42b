from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field

# Endpoints reachable without an access token
PUBLIC_ENDPOINTS = {
    ("GET", "/api/v1/auth/check-email"),
    ("GET", "/api/v1/auth/check-nickname"),
    ("POST", "/api/v1/auth/join"),
    ("POST", "/api/v1/auth/send-otp"),
    ("POST", "/api/v1/auth/sign-in"),
    ("POST", "/api/v1/auth/google"),
    ("POST", "/api/v1/auth/kakao"),
    ("POST", "/api/v1/auth/logout"),
    ("GET", "/api/v1/accounts"),
    ("GET", "/api/v1/files/{file_name}"),
    ("GET", "/health"),
}


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="Gatekeep API",
            version="0.1.0",
            summary="Passwordless accounts, OAuth sign-in and signed sessions",
            routes=app.routes,
        )

        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "AccessToken": {
                "type": "apiKey",
                "in": "header",
                "name": "Authorization",
                "description": "Access token, with or without the 'Bearer ' prefix",
            },
        }
        openapi_schema["security"] = [{"AccessToken": []}]

        for path, path_item in openapi_schema["paths"].items():
            for method, operation in path_item.items():
                if (method.upper(), path) in PUBLIC_ENDPOINTS:
                    operation["security"] = []

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error category")
    code: str | None = Field(None, description="Machine-readable error code")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Sign in required", "type": "authentication_error", "code": "SIGN_IN_REQUIRED"},
                {"message": "Email is already in use", "type": "conflict", "code": "DUPLICATED_EMAIL"},
                {"message": "Invalid pagination cursor", "type": "validation_error", "code": "INVALID_CURSOR"},
            ]
        }
    }
