"""Admin authentication endpoints."""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import get_db
from ..core.security import bearer_scheme, create_access_token, extract_token, get_current_user, verify_token
from .. import crud, schemas, models

router = APIRouter(prefix="/api/admin", tags=["Authentication"])


@router.post("/login")
async def login(
    credentials: schemas.LoginRequest,
    response: Response,
    db: Session = Depends(get_db)
) -> dict:
    """Check the admin credentials and open a session (JWT body + http-only cookie)."""
    user = crud.authenticate_user(db, email=credentials.email, password=credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(data={"sub": str(user.id), "role": user.role}, expires_delta=expires)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=access_token,
        max_age=int(expires.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )

    return {
        "success": True,
        "data": {
            "accessToken": access_token,
            "tokenType": "bearer",
            "user": schemas.UserOut.model_validate(user).to_json(),
        },
    }


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> dict:
    """Revoke the current token and clear the session cookie."""
    token = extract_token(request, credentials)
    payload = verify_token(token) if token else None
    if payload and payload.get("jti"):
        expires_at = datetime.utcfromtimestamp(payload["exp"]) if payload.get("exp") else None
        crud.revoke_token(db, jti=payload["jti"], user_id=payload.get("sub"), expires_at=expires_at)

    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"success": True, "message": "Logged out"}


@router.get("/session")
async def get_session(current_user: models.User = Depends(get_current_user)) -> dict:
    """Return the signed-in user."""
    return {"success": True, "data": schemas.UserOut.model_validate(current_user).to_json()}
