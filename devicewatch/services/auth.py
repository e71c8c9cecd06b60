import logging
from typing import Optional

from fastapi import BackgroundTasks, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from sqlalchemy.orm import Session

from devicewatch.core.settings import settings
from devicewatch.db import get_db
from devicewatch.exceptions import ForbiddenException, UnauthorizedException
from devicewatch.models.user import User, UserRole
from devicewatch.services.device_watch import (
    COOKIE_NAME,
    DeviceCheck,
    DeviceDecision,
    ResponseCookieTransport,
    get_device_watcher,
)
from devicewatch.services.options import OptionStore
from devicewatch.utils.client_ip import get_client_ip, get_user_agent
from devicewatch.utils.datetime import epoch_now, utc_now

logger = logging.getLogger("devicewatch.auth")

security = HTTPBearer()

# Test tokens for development (persisted on first use); honoured only when ENV
# is test or development
MOCK_TOKENS = {
    "mock-admin-token": ("admin-1", "Admin One", "admin1", "admin@example.com", UserRole.admin),
    "mock-editor-token": ("editor-1", "Editor One", "editor1", "editor@example.com", UserRole.editor),
    "mock-subscriber-token": ("subscriber-1", "Subscriber One", "subscriber1", "subscriber@example.com", UserRole.subscriber),
}


def mock_tokens_enabled() -> bool:
    return settings.environment.lower() in ("test", "development")


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:

    token = credentials.credentials
    if token in MOCK_TOKENS and mock_tokens_enabled():
        uid, name, login, email, role = MOCK_TOKENS[token]
        user = db.query(User).filter(User.id == uid).first()
        if not user:
            user = User(id=uid, display_name=name, login=login, email=email, role=role, created_at=utc_now())
            db.add(user)
            db.commit()
            db.refresh(user)
        return user

    try:
        decoded_token = firebase_auth.verify_id_token(token)
        user_id = decoded_token["uid"]
        email = decoded_token["email"]
        full_name = decoded_token.get("name")
        role_from_token = decoded_token.get("role")
    except Exception:
        raise UnauthorizedException("Invalid or expired Firebase token")

    # First try to find user by Firebase UID
    user = db.query(User).filter(User.id == user_id).first()

    # If not found by UID, try to find by email (for existing users)
    if not user:
        user = db.query(User).filter(User.email == email).first()
        if user:
            # Update the user's ID to match Firebase UID
            user.id = user_id
            db.commit()
            return user

    # If still not found, create a new user
    if not user:
        try:
            user_role = UserRole(role_from_token)
        except ValueError:
            user_role = UserRole.subscriber
        user = User(
            id=user_id,
            email=email,
            login=email,
            display_name=full_name if full_name else email.split('@')[0].title(),
            role=user_role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.admin:
        raise ForbiddenException("Admin privileges required")
    return user


def watch_new_device(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Optional[DeviceDecision]:
    """Run the device watcher for the authenticated user of this request.

    The request always proceeds: any failure is logged and yields None.
    Mail is sent after the response via a background task.
    """
    try:
        watcher = get_device_watcher()
        check = DeviceCheck(
            identity=user.to_identity(),
            remote_address=get_client_ip(request, settings.trusted_proxies),
            user_agent=get_user_agent(request),
            presented_token=request.cookies.get(COOKIE_NAME),
            now=epoch_now(),
            secure=request.url.scheme == "https",
        )

        dispatch = None
        if watcher.mailer is not None:
            def dispatch(*args, **kwargs):
                background_tasks.add_task(watcher.mailer, *args, **kwargs)

        decision = watcher.evaluate(
            check,
            store=OptionStore(db),
            transport=ResponseCookieTransport(response),
            dispatch=dispatch,
        )
        request.state.device_decision = decision
        return decision
    except Exception as e:
        logger.error(f"[device_watch] evaluation failed user_id={user.id}: {e}", exc_info=True)
        return None


def watch_new_device_outside_admin(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Optional[DeviceDecision]:
    """Same as watch_new_device, but only when NDN_RUN_ONLY_IN_ADMIN is off."""
    if settings.run_only_in_admin:
        return None
    return watch_new_device(request, response, background_tasks, user, db)
