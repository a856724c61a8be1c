"""
Регистрация и вход пользователей. Ответ входа: JWT bearer для всех остальных запросов.
"""
from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from sharehub.api.deps import get_current_account
from sharehub.db.session import get_db
from sharehub.models.user import Account
from sharehub.schemas.accounts import AccountOut, LoginIn, SignupIn, TokenOut, UsernameAvailableOut
from sharehub.services.auth.security import create_access_token
from sharehub.services.users.service import AccountService

router = APIRouter(prefix="/auth", tags=["auth"])


def _token(account: Account) -> TokenOut:
    return TokenOut(
        access_token=create_access_token(account.id),
        user=AccountOut.model_validate(account, from_attributes=True),
    )


@router.post("/signup", response_model=TokenOut)
def signup(body: SignupIn = Body(...), db: Session = Depends(get_db)):
    account = AccountService(db).signup(body.username, body.password, body.is_18_confirmed)
    return _token(account)


@router.post("/login", response_model=TokenOut)
def login(body: LoginIn = Body(...), db: Session = Depends(get_db)):
    account = AccountService(db).authenticate(body.username, body.password)
    return _token(account)


@router.get("/me", response_model=AccountOut)
def me(account: Account = Depends(get_current_account)):
    return AccountOut.model_validate(account, from_attributes=True)


@router.get("/username-available", response_model=UsernameAvailableOut)
def username_available(username: str = Query(...), db: Session = Depends(get_db)):
    service = AccountService(db)
    return UsernameAvailableOut(username=username, available=service.is_username_available(username.strip()))
