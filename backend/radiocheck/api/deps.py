from typing import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from radiocheck.core.security import decode_access_token
from radiocheck.db.session import SessionLocal
from radiocheck.models import Radio, Verification
from radiocheck.models.verification import STATUS_PENDING

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> str:
    """Return the caller's user id (the token subject)."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    sub = decode_access_token(credentials.credentials)
    if not sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return sub


def get_owned_radio(db: Session, radio_id: int, user_id: str) -> Radio:
    radio = db.get(Radio, radio_id)
    if not radio or (radio.user_id and radio.user_id != user_id):
        raise HTTPException(status_code=404, detail="Radio not found")
    return radio


def get_claimable_verification(db: Session, verification_id: int, radio_id: int, user_id: str) -> Verification:
    """A pending row of the caller's radio; 404 if not theirs, 409 if already processed."""
    row = db.get(Verification, verification_id)
    if not row or row.radio_id != radio_id or (row.user_id and row.user_id != user_id):
        raise HTTPException(status_code=404, detail="Verification not found")
    if row.status != STATUS_PENDING:
        raise HTTPException(status_code=409, detail=f"Verification is already {row.status}")
    return row
