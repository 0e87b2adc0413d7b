"""Authentication API endpoints"""
from fastapi import APIRouter, Depends, status
from typing import Any, Dict
from taskflow.api.deps import get_auth_service, get_current_user, get_database
from taskflow.database import Database
from taskflow.errors import AppError
from taskflow.models.common import utcnow
from taskflow.models.user import (
    ChangePasswordRequest,
    LoginRequest,
    NotificationSettings,
    ProfileUpdate,
    RegisterRequest,
    UserResponse,
)
from taskflow.services.auth import AuthService
from taskflow.utils.monitoring import StructuredLogger

router = APIRouter()


# Handlers that hash or verify passwords are sync so bcrypt runs in the threadpool
@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    database: Database = Depends(get_database),
    auth_service: AuthService = Depends(get_auth_service),
):
    """User registration"""
    if database.users.find_one({"email": request.email}, {"_id": 1}):
        raise AppError.duplicate("email")

    now = utcnow()
    user = {
        "name": request.name,
        "email": request.email,
        "password_hash": auth_service.hash_password(request.password),
        "role": "user",
        "avatar": None,
        "is_active": True,
        "notification_settings": NotificationSettings().model_dump(),
        "last_login": now,
        "created_at": now,
        "updated_at": now,
    }
    # A concurrent registration still hits the unique index and surfaces as a duplicate
    result = database.users.insert_one(user)
    user["_id"] = result.inserted_id

    StructuredLogger.log_event(
        "user_registered",
        f"User {request.email} registered",
        user_id=str(result.inserted_id),
    )

    return {
        "success": True,
        "message": "User registered successfully",
        "data": {
            "user": UserResponse.from_document(user),
            "token": auth_service.create_access_token(user),
        },
    }


@router.post("/login")
def login(
    request: LoginRequest,
    database: Database = Depends(get_database),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Email/password login"""
    user = database.users.find_one({"email": request.email})

    if not user or not auth_service.verify_password(request.password, user.get("password_hash", "")):
        StructuredLogger.log_event(
            "login_failed",
            f"Failed login for {request.email}",
            level="WARNING",
        )
        raise AppError.unauthorized("Invalid email or password")

    if not user.get("is_active", True):
        raise AppError.unauthorized("Account is deactivated")

    now = utcnow()
    database.users.update_one({"_id": user["_id"]}, {"$set": {"last_login": now}})
    user["last_login"] = now

    StructuredLogger.log_event("user_logged_in", f"User {request.email} logged in", user_id=str(user["_id"]))

    return {
        "success": True,
        "message": "Login successful",
        "data": {
            "user": UserResponse.from_document(user),
            "token": auth_service.create_access_token(user),
        },
    }


@router.get("/profile")
async def get_profile(user: Dict[str, Any] = Depends(get_current_user)):
    """Current user's profile"""
    return {"success": True, "data": UserResponse.from_document(user)}


@router.put("/profile")
async def update_profile(
    update: ProfileUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Update name, avatar and notification settings"""
    changes: Dict[str, Any] = {}
    if update.name is not None:
        changes["name"] = update.name
    if update.avatar is not None:
        changes["avatar"] = update.avatar
    if update.notification_settings is not None:
        for channel, enabled in update.notification_settings.model_dump(exclude_none=True).items():
            changes[f"notification_settings.{channel}"] = enabled

    if not changes:
        raise AppError.bad_request("No profile fields provided to update")

    changes["updated_at"] = utcnow()
    database.users.update_one({"_id": user["_id"]}, {"$set": changes})
    updated = database.users.find_one({"_id": user["_id"]})

    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": UserResponse.from_document(updated),
    }


@router.post("/change-password")
def change_password(
    request: ChangePasswordRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Change the current user's password"""
    if not auth_service.verify_password(request.current_password, user.get("password_hash", "")):
        raise AppError.bad_request("Current password is incorrect")

    if request.current_password == request.new_password:
        raise AppError.bad_request("New password must differ from the current password")

    database.users.update_one(
        {"_id": user["_id"]},
        {"$set": {
            "password_hash": auth_service.hash_password(request.new_password),
            "updated_at": utcnow(),
        }},
    )
    StructuredLogger.log_event("password_changed", "Password changed", user_id=str(user["_id"]))

    return {"success": True, "message": "Password changed successfully"}
