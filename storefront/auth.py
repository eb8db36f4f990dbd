from __future__ import annotations
import logging
from datetime import timedelta
from typing import Any, Optional
from fastapi import APIRouter, Depends, Header, Request, Response
from jose import jwt, JWTError
from passlib.hash import bcrypt_sha256
from pydantic import BaseModel

from .errors import DuplicateKey, Forbidden, InvalidField, Unauthorized
from .models import utcnow
from .record_store import Kind, RecordStore
from .validation import MIN_PASSWORD_LENGTH, clean_text, is_valid_email

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
COOKIE_NAME = "token"
ROLE_ADMIN = "admin"
ROLE_CUSTOMER = "customer"


class Principal(BaseModel):
    role: str
    email: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class AuthGate:
    """Resolves credentials to a Principal.

    The administrator is the configured email/password pair and never a row
    in the accounts table; customers are rows.
    """

    def __init__(self, store: RecordStore, settings):
        self.store = store
        self.settings = settings
        self.hasher = bcrypt_sha256.using(rounds=settings.password_rounds)
        self.admin_email = clean_text(settings.admin_email)
        self._admin_hash = None
        if self.admin_email and settings.admin_password:
            self._admin_hash = self.hasher.hash(settings.admin_password)
        else:
            logger.warning("SF_ADMIN_EMAIL / SF_ADMIN_PASSWORD not set; admin login disabled")

    def hash_password(self, p: str) -> str:
        return self.hasher.hash(p)

    def verify_password(self, p: str, h: str) -> bool:
        return bcrypt_sha256.verify(p, h)

    def _account(self, email: str):
        rows = self.store.query(Kind.ACCOUNTS, {"email": email})
        return rows[0] if rows else None

    @staticmethod
    def _credentials(email: Any, password: Any):
        for field, value in (("email", email), ("password", password)):
            if value is not None and not isinstance(value, str):
                raise InvalidField(field, f"{field} must be text")
        email = clean_text(email)
        if not email or not password:
            raise InvalidField("email" if not email else "password", "Email and password required")
        return email, password

    def register(self, email: Any, password: Any) -> int:
        email, password = self._credentials(email, password)
        if not is_valid_email(email):
            raise InvalidField("email", "Invalid email address format")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidField("password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if self.admin_email and email == self.admin_email:
            raise DuplicateKey("Email already exists")
        try:
            account_id = self.store.insert(Kind.ACCOUNTS, {
                "email": email,
                "password_hash": self.hash_password(password),
            })
        except DuplicateKey:
            raise DuplicateKey("Email already exists")
        logger.info("registered customer account %s", account_id)
        return account_id

    def authenticate(self, email: Any, password: Any) -> Principal:
        email, password = self._credentials(email, password)
        if self.admin_email and email == self.admin_email:
            if not self._admin_hash or not self.verify_password(password, self._admin_hash):
                raise Unauthorized("Wrong admin credentials")
            return Principal(role=ROLE_ADMIN, email=email)
        account = self._account(email)
        if account is None:
            raise Unauthorized("Customer not found. Please register first.")
        if not self.verify_password(password, account["password_hash"]):
            raise Unauthorized("Wrong password")
        return Principal(role=ROLE_CUSTOMER, email=email)

    def token_lifetime(self, principal: Principal) -> timedelta:
        minutes = self.settings.admin_token_minutes if principal.is_admin else self.settings.customer_token_minutes
        return timedelta(minutes=minutes)

    def issue_token(self, principal: Principal) -> str:
        now = utcnow()
        to_encode = {
            "sub": principal.email,
            "role": principal.role,
            "iat": now,
            "exp": now + self.token_lifetime(principal),
        }
        return jwt.encode(to_encode, self.settings.secret_key, algorithm=ALGORITHM)

    def principal_from_token(self, token: str) -> Optional[Principal]:
        try:
            payload = jwt.decode(token, self.settings.secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None
        role, email = payload.get("role"), payload.get("sub")
        if not email:
            return None
        if role == ROLE_ADMIN:
            return Principal(role=role, email=email) if email == self.admin_email else None
        if role == ROLE_CUSTOMER and self._account(email) is not None:
            return Principal(role=role, email=email)
        return None


# ===== dependencies =====

def get_gate(request: Request) -> AuthGate:
    return request.app.state.auth


def current_principal(request: Request, authorization: Optional[str] = Header(None),
                      gate: AuthGate = Depends(get_gate)) -> Optional[Principal]:
    """Bearer header first, then the cookie; the first token that resolves wins."""
    candidates = []
    if authorization and authorization.lower().startswith("bearer "):
        candidates.append(authorization.split(" ", 1)[1].strip())
    candidates.append(request.cookies.get(COOKIE_NAME))
    for token in candidates:
        if not token:
            continue
        principal = gate.principal_from_token(token)
        if principal is not None:
            return principal
    return None


def require_principal(principal: Optional[Principal] = Depends(current_principal)) -> Principal:
    if principal is None:
        raise Unauthorized()
    return principal


def require_admin(principal: Principal = Depends(require_principal)) -> Principal:
    if not principal.is_admin:
        raise Forbidden()
    return principal


# ===== Schemas =====
class CredentialsIn(BaseModel):
    email: Optional[Any] = None
    password: Optional[Any] = None


class LoginOut(BaseModel):
    message: str
    role: str
    access_token: str
    token_type: str = "bearer"


class MeOut(BaseModel):
    user: Principal


# ===== Router =====
router = APIRouter(prefix="/api/auth", tags=["auth"])


def _cookie_options(request: Request) -> dict:
    return {
        "httponly": True,
        "samesite": "lax",
        "secure": request.app.state.settings.secure_cookies,
    }


@router.post("/register")
def register(payload: CredentialsIn, gate: AuthGate = Depends(get_gate)):
    account_id = gate.register(payload.email, payload.password)
    return {"message": "Customer registered successfully", "id": account_id}


@router.post("/login", response_model=LoginOut)
def login(payload: CredentialsIn, request: Request, response: Response, gate: AuthGate = Depends(get_gate)):
    principal = gate.authenticate(payload.email, payload.password)
    token = gate.issue_token(principal)
    response.set_cookie(
        COOKIE_NAME, token,
        max_age=int(gate.token_lifetime(principal).total_seconds()),
        **_cookie_options(request),
    )
    label = "Admin" if principal.is_admin else "Customer"
    return LoginOut(message=f"{label} logged in", role=principal.role, access_token=token)


@router.get("/me", response_model=MeOut)
def me(principal: Principal = Depends(require_principal)):
    return MeOut(user=principal)


@router.post("/logout")
def logout(request: Request, response: Response):
    response.delete_cookie(COOKIE_NAME, **_cookie_options(request))
    return {"message": "Logged out"}
