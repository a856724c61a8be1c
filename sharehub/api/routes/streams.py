from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from sharehub.api.deps import get_current_account
from sharehub.db.session import get_db
from sharehub.models.user import Account
from sharehub.schemas.streams import StreamIn, StreamOut, ViewerCountOut
from sharehub.services.streams.service import StreamService

router = APIRouter(prefix="/streams", tags=["streams"])


@router.get("", response_model=list[StreamOut])
def list_active(db: Session = Depends(get_db)):
    return [StreamOut.model_validate(s) for s in StreamService(db).list_active()]


@router.post("", response_model=StreamOut)
def start(body: StreamIn = Body(...), account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    stream = StreamService(db).start(account.id, body.title, body.description, body.thumbnail_url)
    return StreamOut.model_validate(stream)


@router.post("/{stream_id}/end", response_model=StreamOut)
def end(stream_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return StreamOut.model_validate(StreamService(db).end(account.id, stream_id))


@router.post("/{stream_id}/join", response_model=ViewerCountOut)
def join(stream_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return ViewerCountOut(viewer_count=StreamService(db).join(stream_id))


@router.post("/{stream_id}/leave", response_model=ViewerCountOut)
def leave(stream_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return ViewerCountOut(viewer_count=StreamService(db).leave(stream_id))
