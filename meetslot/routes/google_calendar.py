"""
Google Calendar Account Routes
Connect, list, choose the default and disconnect Google accounts
"""

import logging
from datetime import timedelta
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import (
    CALENDAR_TIMEOUT_SECONDS,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REDIRECT_URI,
)
from ..database import get_db
from ..domain.scheduling.intervals import utcnow
from ..models import User
from ..models_google_calendar import GoogleCalendarAccount
from ..security_utils import decrypt_token, encrypt_token, generate_timed_token, verify_timed_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/google-calendar", tags=["google-calendar"])

# Google OAuth URLs
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]
OAUTH_STATE_SALT = "google-calendar-oauth"


class OAuthCallbackRequest(BaseModel):
    code: str
    state: str


def _account_to_dict(account: GoogleCalendarAccount) -> dict:
    return {
        "id": account.id,
        "email": account.google_user_email,
        "calendar_id": account.google_calendar_id,
        "is_default": account.is_default,
    }


def _get_account(db: Session, user: User, account_id: int) -> GoogleCalendarAccount:
    account = (
        db.query(GoogleCalendarAccount)
        .filter(GoogleCalendarAccount.id == account_id, GoogleCalendarAccount.user_id == user.id)
        .first()
    )
    if not account:
        raise HTTPException(status_code=404, detail="Calendar account not found")
    return account


@router.get("/accounts")
async def list_connected_accounts(
    current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    accounts = (
        db.query(GoogleCalendarAccount)
        .filter(GoogleCalendarAccount.user_id == current_user.id)
        .order_by(GoogleCalendarAccount.id)
        .all()
    )
    return {"connected": bool(accounts), "accounts": [_account_to_dict(a) for a in accounts]}


@router.get("/connect")
async def initiate_google_calendar_oauth(current_user: User = Depends(get_current_user)):
    """Initiate Google Calendar OAuth flow"""
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise HTTPException(status_code=500, detail="Google Calendar not configured")

    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(GOOGLE_CALENDAR_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": generate_timed_token({"user_id": current_user.id}, salt=OAUTH_STATE_SALT),
    }

    logger.info(f"Google Calendar OAuth initiated for user: {current_user.email}")
    return {"authorization_url": f"{GOOGLE_AUTH_URL}?{urlencode(params)}"}


@router.post("/callback")
async def handle_google_calendar_callback(
    data: OAuthCallbackRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Exchange the authorization code and store the account; the first account becomes default"""
    state = verify_timed_token(data.state, max_age=900, salt=OAUTH_STATE_SALT)
    if not state or state.get("user_id") != current_user.id:
        raise HTTPException(status_code=400, detail="Invalid OAuth state")

    try:
        async with httpx.AsyncClient(timeout=CALENDAR_TIMEOUT_SECONDS) as client:
            token_response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": data.code,
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "redirect_uri": GOOGLE_REDIRECT_URI,
                    "grant_type": "authorization_code",
                },
            )

            if token_response.status_code != 200:
                logger.error(f"Token exchange failed: {token_response.text}")
                raise HTTPException(status_code=400, detail="Failed to exchange authorization code")

            tokens = token_response.json()
            access_token = tokens.get("access_token")
            refresh_token = tokens.get("refresh_token")
            expires_in = tokens.get("expires_in", 3600)

            if not access_token or not refresh_token:
                raise HTTPException(status_code=400, detail="Invalid token response")

            user_info_response = await client.get(
                "https://www.googleapis.com/oauth2/v2/userinfo",
                headers={"Authorization": f"Bearer {access_token}"},
            )
            if user_info_response.status_code != 200:
                logger.error(f"Failed to get user info: {user_info_response.text}")
                raise HTTPException(status_code=400, detail="Failed to get user info")
            google_email = user_info_response.json().get("email")

            calendar_response = await client.get(
                "https://www.googleapis.com/calendar/v3/users/me/calendarList/primary",
                headers={"Authorization": f"Bearer {access_token}"},
            )
            calendar_id = "primary"
            if calendar_response.status_code == 200:
                calendar_id = calendar_response.json().get("id", "primary")
    except httpx.HTTPError as e:
        logger.error(f"❌ Google Calendar callback error: {str(e)}")
        raise HTTPException(status_code=502, detail="Failed to reach Google") from e

    accounts = db.query(GoogleCalendarAccount).filter(GoogleCalendarAccount.user_id == current_user.id).all()
    account = next((a for a in accounts if a.google_user_email == google_email), None)

    if account is None:
        account = GoogleCalendarAccount(user_id=current_user.id, is_default=not accounts)
        db.add(account)

    account.access_token = encrypt_token(access_token)
    account.refresh_token = encrypt_token(refresh_token)
    account.token_expires_at = utcnow() + timedelta(seconds=expires_in)
    account.google_user_email = google_email
    account.google_calendar_id = calendar_id

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"✅ Google Calendar connected for user: {current_user.email}")
    return {"success": True, "account": _account_to_dict(account)}


@router.post("/accounts/{account_id}/default")
async def set_default_account(
    account_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    account = _get_account(db, current_user, account_id)
    db.query(GoogleCalendarAccount).filter(GoogleCalendarAccount.user_id == current_user.id).update(
        {GoogleCalendarAccount.is_default: False}
    )
    account.is_default = True
    db.commit()
    return {"success": True, "account": _account_to_dict(account)}


@router.delete("/accounts/{account_id}")
async def disconnect_account(
    account_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Disconnect an account; if it was the default, the oldest remaining one takes over"""
    account = _get_account(db, current_user, account_id)

    try:
        async with httpx.AsyncClient(timeout=CALENDAR_TIMEOUT_SECONDS) as client:
            await client.post(GOOGLE_REVOKE_URL, params={"token": decrypt_token(account.access_token)})
    except Exception as e:
        logger.warning(f"Failed to revoke Google tokens: {str(e)}")

    was_default = account.is_default
    db.delete(account)
    db.flush()

    if was_default:
        successor = (
            db.query(GoogleCalendarAccount)
            .filter(GoogleCalendarAccount.user_id == current_user.id)
            .order_by(GoogleCalendarAccount.id)
            .first()
        )
        if successor:
            successor.is_default = True

    db.commit()
    logger.info(f"✅ Google Calendar account {account_id} disconnected for user: {current_user.email}")
    return {"success": True}
