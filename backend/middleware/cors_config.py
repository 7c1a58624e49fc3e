"""
CORS Configuration
Origins come from CORS_ORIGINS; local front-end ports are added in development
"""
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
import os
from typing import List

DEVELOPMENT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


def parse_origins(raw: str) -> List[str]:
    """Comma-separated origins, blanks dropped"""
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


def allowed_origins() -> List[str]:
    origins = parse_origins(os.getenv("CORS_ORIGINS", ""))
    if os.getenv("ENVIRONMENT", "production") == "development":
        origins.extend(o for o in DEVELOPMENT_ORIGINS if o not in origins)
    return origins


def setup_cors(app: FastAPI):
    """
    Attach CORSMiddleware to ``app``

    With no CORS_ORIGINS outside development, cross-origin calls are refused.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-User-Id"],
        # CSV downloads name their file through Content-Disposition
        expose_headers=["X-Request-Id", "Content-Disposition"],
        max_age=3600,
    )
