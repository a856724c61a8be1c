from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from sharehub.api.deps import get_current_account
from sharehub.db.session import get_db
from sharehub.models.user import Account
from sharehub.schemas.messages import (
    GroupCreateIn,
    GroupMemberIn,
    GroupMemberOut,
    GroupMessageIn,
    GroupMessageOut,
    GroupOut,
    GroupUpdateIn,
)
from sharehub.services.messages.groups import GroupChatService

router = APIRouter(prefix="/groups", tags=["groups"])


@router.get("", response_model=list[GroupOut])
def my_groups(account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return [GroupOut.model_validate(g) for g in GroupChatService(db).list_for_user(account.id)]


@router.post("", response_model=GroupOut)
def create_group(
    body: GroupCreateIn = Body(...),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    group = GroupChatService(db).create(
        account.id, body.name, body.member_ids, description=body.description, avatar_url=body.avatar_url
    )
    return GroupOut.model_validate(group)


@router.get("/{group_id}", response_model=GroupOut)
def get_group(group_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return GroupOut.model_validate(GroupChatService(db).get(group_id, account.id))


@router.patch("/{group_id}", response_model=GroupOut)
def update_group(
    group_id: str,
    body: GroupUpdateIn = Body(...),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    group = GroupChatService(db).update(
        group_id, account.id, name=body.name, description=body.description, avatar_url=body.avatar_url
    )
    return GroupOut.model_validate(group)


@router.get("/{group_id}/members", response_model=list[GroupMemberOut])
def members(group_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return [GroupMemberOut(**m.model_dump()) for m in GroupChatService(db).members(group_id, account.id)]


@router.post("/{group_id}/members")
def add_member(
    group_id: str,
    body: GroupMemberIn = Body(...),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    GroupChatService(db).add_member(group_id, account.id, body.user_id)
    return {"ok": True}


@router.delete("/{group_id}/members/{user_id}")
def remove_member(
    group_id: str,
    user_id: str,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    GroupChatService(db).remove_member(group_id, account.id, user_id)
    return {"ok": True}


@router.post("/{group_id}/leave")
def leave(group_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    GroupChatService(db).leave(group_id, account.id)
    return {"ok": True}


@router.get("/{group_id}/messages", response_model=list[GroupMessageOut])
def group_messages(
    group_id: str,
    limit: int = Query(100, ge=1, le=500),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    return [GroupMessageOut.model_validate(m) for m in GroupChatService(db).messages(group_id, account.id, limit=limit)]


@router.post("/{group_id}/messages", response_model=GroupMessageOut)
def send_group_message(
    group_id: str,
    body: GroupMessageIn = Body(...),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    message = GroupChatService(db).send(group_id, account.id, body.content, body.image_url)
    return GroupMessageOut.model_validate(message)
