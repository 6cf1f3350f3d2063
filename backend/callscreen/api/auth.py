import hashlib
from fastapi import APIRouter, Depends, HTTPException, status, Request
from jose import JWTError
from sqlalchemy.orm import Session
from callscreen.core.clock import utcnow
from callscreen.core.database import get_db
from callscreen.core.security import create_access_token, create_refresh_token, verify_password, decode_token
from callscreen.models import RefreshToken, User
from callscreen.schemas import LoginRequest, TokenPair, RefreshRequest, LogoutRequest
from callscreen.services.audit import log_event
from callscreen.services.rate_limit import RateLimiter

router = APIRouter(prefix="/auth", tags=["auth"])
rate_limiter = RateLimiter()


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _issue_tokens(db: Session, user: User) -> TokenPair:
    access_token = create_access_token(user.username, user.role)
    refresh_token, expires_at = create_refresh_token(user.username)
    db.add(RefreshToken(user_id=user.id, token_hash=_hash_token(refresh_token), expires_at=expires_at))
    db.commit()
    return TokenPair(access_token=access_token, refresh_token=refresh_token)


@router.post("/login", response_model=TokenPair)
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    client_key = request.client.host if request.client else payload.username
    if not rate_limiter.hit(client_key):
        log_event(db, "login", "blocked", "rate limited")
        raise HTTPException(status_code=429, detail="Too many attempts")
    user = db.query(User).filter(User.username == payload.username).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        log_event(db, "login", "failed", "invalid credentials", user_id=user.id if user else None)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User inactive")
    tokens = _issue_tokens(db, user)
    log_event(db, "login", "success", user_id=user.id)
    rate_limiter.reset(client_key)
    return tokens


@router.post("/refresh", response_model=TokenPair)
def refresh(payload_request: RefreshRequest, db: Session = Depends(get_db)):
    try:
        payload = decode_token(payload_request.refresh_token)
    except JWTError as exc:
        raise HTTPException(status_code=401, detail="Refresh token expired") from exc
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    token_hash = _hash_token(payload_request.refresh_token)
    stored = db.query(RefreshToken).filter(RefreshToken.token_hash == token_hash).first()
    if not stored or stored.revoked_at or stored.expires_at < utcnow():
        raise HTTPException(status_code=401, detail="Refresh token expired")
    stored.revoked_at = utcnow()
    user = db.query(User).filter(User.username == payload.get("sub")).first()
    if not user or not user.is_active:
        db.commit()
        raise HTTPException(status_code=404, detail="User not found")
    return _issue_tokens(db, user)


@router.post("/logout")
def logout(payload_request: LogoutRequest, db: Session = Depends(get_db)):
    token_hash = _hash_token(payload_request.refresh_token)
    stored = db.query(RefreshToken).filter(RefreshToken.token_hash == token_hash).first()
    if stored and not stored.revoked_at:
        stored.revoked_at = utcnow()
        db.commit()
    return {"status": "ok"}
