"""Request dependencies shared by the route groups"""
from typing import Any, Dict, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from taskflow.database import Database
from taskflow.errors import AppError
from taskflow.models.common import parse_object_id
from taskflow.services.auth import AuthService
from taskflow.services.notification import NotificationService

security = HTTPBearer(auto_error=False)


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    database: Database = Depends(get_database),
    auth_service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    """Resolve the bearer token to an active user document"""
    if credentials is None or not credentials.credentials:
        raise AppError.unauthorized("Access token required")

    payload = auth_service.decode_access_token(credentials.credentials)
    user_id = parse_object_id(payload["sub"])
    if user_id is None:
        raise AppError.invalid_token()

    user = database.users.find_one({"_id": user_id})
    if not user or not user.get("is_active", True):
        raise AppError.unauthorized("User not found or inactive")
    return user
