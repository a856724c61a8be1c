"""
Зависимости роутов: текущий аккаунт по Authorization: Bearer <token>.
Без токена / с невалидным токеном -> AuthError (401) до любых побочных эффектов.
"""
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from sharehub.core.errors import AuthError
from sharehub.db.session import get_db
from sharehub.models.user import Account
from sharehub.services.auth.security import decode_access_token
from sharehub.services.users.service import AccountService

bearer_scheme = HTTPBearer(auto_error=False)


def get_optional_account(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Account | None:
    if credentials is None or not credentials.credentials:
        return None
    account_id = decode_access_token(credentials.credentials)
    account = AccountService(db).get(account_id)
    if account is None:
        raise AuthError("Invalid user token")
    return account


def get_current_account(account: Account | None = Depends(get_optional_account)) -> Account:
    if account is None:
        raise AuthError("Missing authorization header")
    return account
