from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.config import settings
from kanban_api.deps import client_ip, get_current_user, get_db
from kanban_api.errors import Conflict
from kanban_api.models import Session as DbSession, User
from kanban_api.projections import user_brief
from kanban_api.rate_limit import limiter
from kanban_api.schemas import LoginIn, RegisterIn, UserBrief
from kanban_api.security import SESSION_COOKIE_NAME, SESSION_TTL_DAYS, hash_password, new_session_expires_at, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])


def _rate_limit_or_429(*, key: str, limit: int, window_seconds: int) -> None:
  allowed, retry_after = limiter.hit(key, limit=limit, window_seconds=window_seconds)
  if allowed:
    return
  raise HTTPException(
    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    detail={"code": "rate_limited", "message": "Too many requests", "retryAfterSeconds": retry_after},
    headers={"Retry-After": str(retry_after)},
  )


async def _start_session(db: AsyncSession, request: Request, response: Response, u: User) -> None:
  s = DbSession(
    user_id=u.id,
    created_ip=client_ip(request),
    user_agent=request.headers.get("user-agent"),
    expires_at=new_session_expires_at(),
  )
  db.add(s)
  await db.flush()
  response.set_cookie(
    key=SESSION_COOKIE_NAME,
    value=s.id,
    httponly=True,
    secure=settings.cookie_secure,
    samesite="lax",
    domain=settings.cookie_domain or None,
    max_age=int(SESSION_TTL_DAYS * 86400),
    expires=s.expires_at,
    path="/",
  )


@router.post("/register", response_model=UserBrief, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> UserBrief:
  email = payload.email.strip().lower()
  res = await db.execute(select(User.id).where(User.email == email))
  if res.scalar_one_or_none():
    raise Conflict("Email already registered")
  u = User(email=email, name=payload.name.strip(), password_hash=hash_password(payload.password))
  db.add(u)
  await db.flush()
  await _start_session(db, request, response, u)
  await db.commit()
  return user_brief(u)


@router.post("/login", response_model=UserBrief)
async def login(payload: LoginIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> UserBrief:
  ip = client_ip(request) or "unknown"
  email = (payload.email or "").strip().lower()
  _rate_limit_or_429(key=f"auth:login:ip:{ip}", limit=int(settings.rate_limit_login_ip_per_minute), window_seconds=60)
  if email:
    _rate_limit_or_429(key=f"auth:login:email:{email}", limit=int(settings.rate_limit_login_email_per_minute), window_seconds=60)

  res = await db.execute(select(User).where(User.email == email))
  u = res.scalar_one_or_none()
  if not u or not verify_password(payload.password, u.password_hash):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

  await _start_session(db, request, response, u)
  await db.commit()
  return user_brief(u)


@router.post("/logout")
async def logout(
  request: Request,
  response: Response,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  session_id = request.cookies.get(SESSION_COOKIE_NAME)
  await db.execute(delete(DbSession).where(DbSession.id == session_id, DbSession.user_id == user.id))
  response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
  await db.commit()
  return {"ok": True}


@router.get("/me", response_model=UserBrief)
async def me(user: User = Depends(get_current_user)) -> UserBrief:
  return user_brief(user)
