"""
Посты: лента с проверкой доступа, лайки, комментарии, ввод пароля.
Закрытый пост отдаётся без content/image_url, с blocked_by и стоимостью.
"""
from fastapi import APIRouter, Body, Depends, Header, Query
from sqlalchemy.orm import Session

from sharehub.api.deps import get_current_account, get_optional_account
from sharehub.db.session import get_db
from sharehub.models.user import Account
from sharehub.schemas.content import (
    CommentIn,
    CommentOut,
    PasswordGrantOut,
    PasswordIn,
    PostIn,
    PostOut,
    ToggleOut,
)
from sharehub.services.posts.service import GatedPost, PostService
from sharehub.services.social.service import SocialService

router = APIRouter(prefix="/posts", tags=["posts"])

GRANT_HEADER = "X-Content-Grant"


def post_out(gated: GatedPost) -> PostOut:
    post, access = gated.post, gated.access
    return PostOut(
        id=post.id,
        user_id=post.user_id,
        title=post.title,
        content=post.content if access.can_view else None,
        category=post.category,
        tags=post.tags,
        image_url=post.image_url if access.can_view else None,
        likes_count=post.likes_count,
        views_count=post.views_count,
        view_condition=post.view_condition,
        token_cost=post.token_cost or 0,
        has_password=bool(post.password),
        locked=not access.can_view,
        blocked_by=access.blocked_by,
        created_at=post.created_at,
    )


@router.get("", response_model=list[PostOut])
def feed(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    author_id: str | None = Query(None),
    category: str | None = Query(None),
    viewer: Account | None = Depends(get_optional_account),
    db: Session = Depends(get_db),
):
    items = PostService(db).feed(
        viewer.id if viewer else None,
        limit=limit,
        offset=offset,
        author_id=author_id,
        category=category,
    )
    return [post_out(g) for g in items]


@router.post("", response_model=PostOut)
def create_post(
    body: PostIn = Body(...),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    service = PostService(db)
    post = service.create(
        account,
        title=body.title,
        content=body.content,
        category=body.category,
        tags=body.tags,
        image_url=body.image_url,
        view_condition=body.view_condition,
        password=body.password,
        token_cost=body.token_cost,
    )
    return post_out(service.get(post.id, account.id))


@router.get("/{post_id}", response_model=PostOut)
def get_post(
    post_id: str,
    grant: str | None = Header(None, alias=GRANT_HEADER),
    viewer: Account | None = Depends(get_optional_account),
    db: Session = Depends(get_db),
):
    return post_out(PostService(db).get(post_id, viewer.id if viewer else None, grant))


@router.delete("/{post_id}")
def delete_post(post_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    PostService(db).delete(account.id, post_id)
    return {"success": True}


@router.post("/{post_id}/verify-password", response_model=PasswordGrantOut)
def verify_password(
    post_id: str,
    body: PasswordIn = Body(...),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    return PasswordGrantOut(grant=PostService(db).verify_password(account.id, post_id, body.password))


@router.post("/{post_id}/like", response_model=ToggleOut)
def toggle_like(post_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return ToggleOut(active=SocialService(db).toggle_like(account.id, post_id))


@router.get("/{post_id}/comments", response_model=list[CommentOut])
def list_comments(post_id: str, db: Session = Depends(get_db)):
    return [CommentOut.model_validate(c) for c in SocialService(db).list_comments(post_id)]


@router.post("/{post_id}/comments", response_model=CommentOut)
def add_comment(
    post_id: str,
    body: CommentIn = Body(...),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    return CommentOut.model_validate(SocialService(db).add_comment(account.id, post_id, body.content))


@router.delete("/comments/{comment_id}")
def delete_comment(comment_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    SocialService(db).delete_comment(account.id, comment_id)
    return {"success": True}
