from fastapi import APIRouter, Body, Depends, File, Form, Header, Query, UploadFile
from sqlalchemy.orm import Session

from sharehub.api.deps import get_current_account, get_optional_account
from sharehub.api.routes.posts import GRANT_HEADER
from sharehub.db.session import get_db
from sharehub.models.user import Account
from sharehub.schemas.content import MediaOut, PasswordGrantOut, PasswordIn
from sharehub.services.media.service import GatedMedia, MediaService

router = APIRouter(prefix="/media", tags=["media"])


def media_out(gated: GatedMedia) -> MediaOut:
    media, access = gated.media, gated.access
    return MediaOut(
        id=media.id,
        user_id=media.user_id,
        post_id=media.post_id,
        title=media.title,
        description=media.description,
        content_type=media.content_type,
        file_type=media.file_type,
        file_url=media.file_url if access.can_view else None,
        file_size=media.file_size,
        token_cost=media.token_cost or 0,
        has_password=bool(media.password),
        locked=not access.can_view,
        blocked_by=access.blocked_by,
        created_at=media.created_at,
    )


@router.get("", response_model=list[MediaOut])
def list_media(
    content_type: str | None = Query(None, pattern="^(image|video)$"),
    user_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    viewer: Account | None = Depends(get_optional_account),
    db: Session = Depends(get_db),
):
    items = MediaService(db).list(
        viewer.id if viewer else None,
        content_type=content_type,
        user_id=user_id,
        limit=limit,
        offset=offset,
    )
    return [media_out(g) for g in items]


@router.post("", response_model=MediaOut)
async def upload_media(
    file: UploadFile = File(...),
    title: str | None = Form(None),
    description: str | None = Form(None),
    post_id: str | None = Form(None),
    password: str | None = Form(None),
    token_cost: str | None = Form(None),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    content = await file.read()
    service = MediaService(db)
    media = service.upload(
        account.id,
        filename=file.filename or "",
        content=content,
        mime_type=file.content_type,
        title=title,
        description=description,
        post_id=post_id,
        password=password,
        token_cost=token_cost,
    )
    return media_out(service.get(media.id, account.id))


@router.get("/{media_id}", response_model=MediaOut)
def get_media(
    media_id: str,
    grant: str | None = Header(None, alias=GRANT_HEADER),
    viewer: Account | None = Depends(get_optional_account),
    db: Session = Depends(get_db),
):
    return media_out(MediaService(db).get(media_id, viewer.id if viewer else None, grant))


@router.post("/{media_id}/verify-password", response_model=PasswordGrantOut)
def verify_password(
    media_id: str,
    body: PasswordIn = Body(...),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    return PasswordGrantOut(grant=MediaService(db).verify_password(account.id, media_id, body.password))


@router.delete("/{media_id}")
def delete_media(media_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    MediaService(db).delete(account.id, media_id)
    return {"success": True}
