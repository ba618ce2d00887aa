from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban_api.access import card_access, comment_access
from kanban_api.activity import ActivityType, log_activity
from kanban_api.deps import get_current_user, get_db
from kanban_api.errors import BadRequest, Forbidden
from kanban_api.models import Comment, User
from kanban_api.notifications.service import notify_comment, parse_mentions
from kanban_api.projections import comment_out
from kanban_api.schemas import CommentCreateIn, CommentOut, CommentUpdateIn, MessageOut

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def create_comment(payload: CommentCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CommentOut:
  scope = await card_access(db, payload.cardId, user)
  mentions = parse_mentions(payload.content)
  cm = Comment(card_id=scope.card.id, author_id=user.id, content=payload.content, mentions=mentions)
  db.add(cm)
  await log_activity(db, card_id=scope.card.id, user_id=user.id, action_type=ActivityType.ADD_COMMENT)
  await notify_comment(db, card=scope.card, author=user, mentions=mentions)
  await db.commit()
  return comment_out(cm, user)


@router.get("", response_model=list[CommentOut])
async def list_comments(
  cardId: str | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[CommentOut]:
  if not cardId:
    raise BadRequest("cardId is required")
  await card_access(db, cardId, user)
  res = await db.execute(
    select(Comment, User)
    .join(User, User.id == Comment.author_id)
    .where(Comment.card_id == cardId)
    .order_by(Comment.created_at.desc(), Comment.id.desc())
  )
  return [comment_out(cm, u) for cm, u in res.all()]


@router.patch("/{comment_id}", response_model=CommentOut)
async def update_comment(
  comment_id: str,
  payload: CommentUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CommentOut:
  scope = await comment_access(db, comment_id, user)
  cm = scope.comment
  if cm.author_id != user.id:
    raise Forbidden("You can only edit your own comments")
  cm.content = payload.content
  cm.mentions = parse_mentions(payload.content)
  await log_activity(db, card_id=cm.card_id, user_id=user.id, action_type=ActivityType.UPDATE_COMMENT)
  await db.commit()
  return comment_out(cm, user)


@router.delete("/{comment_id}", response_model=MessageOut)
async def delete_comment(comment_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> MessageOut:
  scope = await comment_access(db, comment_id, user)
  cm = scope.comment
  if cm.author_id != user.id:
    raise Forbidden("You can only delete your own comments")
  card_id = cm.card_id
  await db.delete(cm)
  await log_activity(db, card_id=card_id, user_id=user.id, action_type=ActivityType.DELETE_COMMENT)
  await db.commit()
  return MessageOut(message="Comment deleted successfully")
