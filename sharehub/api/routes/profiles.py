from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from sharehub.api.deps import get_current_account, get_optional_account
from sharehub.core.errors import NotFoundError
from sharehub.db.session import get_db
from sharehub.models.user import Account
from sharehub.schemas.accounts import AccountOut, PasswordChangeIn, ProfileOut, ProfileUpdateIn
from sharehub.schemas.content import ToggleOut
from sharehub.services.social.service import SocialService
from sharehub.services.users.service import AccountService

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/search", response_model=list[ProfileOut])
def search(q: str = Query(""), limit: int = Query(20, ge=1, le=100), db: Session = Depends(get_db)):
    return [ProfileOut.model_validate(a) for a in AccountService(db).search(q, limit=limit)]


@router.patch("/me", response_model=AccountOut)
def update_me(
    body: ProfileUpdateIn = Body(...),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    account = AccountService(db).update_profile(account, body.username, body.bio, body.avatar_url)
    return AccountOut.model_validate(account)


@router.post("/me/password")
def change_password(
    body: PasswordChangeIn = Body(...),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    AccountService(db).change_password(account, body.current_password, body.new_password)
    return {"success": True}


@router.delete("/me")
def delete_me(account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    AccountService(db).delete_account(account)
    return {"success": True}


@router.get("/{username}", response_model=ProfileOut)
def get_profile(username: str, db: Session = Depends(get_db)):
    account = AccountService(db).get_by_username(username)
    if account is None:
        raise NotFoundError("Profile not found")
    return ProfileOut.model_validate(account)


@router.get("/{username}/subscription", response_model=ToggleOut)
def subscription_status(
    username: str,
    viewer: Account | None = Depends(get_optional_account),
    db: Session = Depends(get_db),
):
    author = AccountService(db).get_by_username(username)
    if author is None:
        raise NotFoundError("Profile not found")
    return ToggleOut(active=SocialService(db).is_subscribed(viewer.id if viewer else None, author.id))


@router.post("/{username}/subscribe", response_model=ToggleOut)
def toggle_subscription(
    username: str,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    author = AccountService(db).get_by_username(username)
    if author is None:
        raise NotFoundError("Profile not found")
    return ToggleOut(active=SocialService(db).toggle_subscription(account.id, author.id))


@router.get("/{username}/subscribers", response_model=list[ProfileOut])
def subscribers(username: str, db: Session = Depends(get_db)):
    author = AccountService(db).get_by_username(username)
    if author is None:
        raise NotFoundError("Profile not found")
    return [ProfileOut.model_validate(a) for a in SocialService(db).list_subscribers(author.id)]
