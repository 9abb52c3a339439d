import re
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user
from app.models.models import Task, TaskComment, TaskCommentMention, User, Vendor
from app.api.common import user_brief, iso, get_company_task
from app.services.activity_service import log_activity
from app.services.notification_service import notify

router = APIRouter(prefix="/api", tags=["comments"])

# @[Display Name](user-id)
MENTION_PATTERN = re.compile(r"@\[([^\]]+)\]\(([^)]+)\)")


def parse_mentions(content: str) -> list[str]:
    ids = []
    for _, user_id in MENTION_PATTERN.findall(content or ""):
        if user_id not in ids:
            ids.append(user_id)
    return ids


def _author(c: TaskComment):
    if c.author:
        return user_brief(c.author)
    if c.vendor:
        return {"id": f"vendor-{c.vendor.id}", "first_name": c.vendor.name, "last_name": "(Vendor)", "email": c.vendor.email}
    return None


def serialize_comment(c: TaskComment, with_replies: bool = True) -> dict:
    data = {
        "id": c.id,
        "task_id": c.task_id,
        "parent_id": c.parent_id,
        "content": c.content,
        "author": _author(c),
        "is_vendor": c.vendor_id is not None,
        "mentioned_user_ids": [m.user_id for m in c.mentions],
        "edited_at": iso(c.edited_at),
        "created_at": str(c.created_at),
    }
    if with_replies:
        replies = sorted((r for r in c.replies if not r.deleted_at), key=lambda r: r.created_at)
        data["replies"] = [serialize_comment(r, with_replies=False) for r in replies]
    return data


def task_comments(db: Session, task: Task) -> list[dict]:
    """Top-level comments newest first, each with its replies oldest first."""
    comments = db.query(TaskComment).filter(
        TaskComment.task_id == task.id,
        TaskComment.parent_id.is_(None),
        TaskComment.deleted_at.is_(None),
    ).order_by(TaskComment.created_at.desc()).all()
    return [serialize_comment(c) for c in comments]


def _mentionable(db: Session, company_id: str, user_ids: list[str], author_id: str | None) -> list[User]:
    ids = [i for i in user_ids if i != author_id]
    if not ids:
        return []
    return db.query(User).filter(
        User.id.in_(ids), User.company_id == company_id, User.is_active == True
    ).all()


def _notify_mentions(db: Session, task: Task, author: User, users: list[User]):
    for u in users:
        notify(
            db, author.company_id, u.id, "mention_in_comment", "You were mentioned in a comment",
            message=f'{author.full_name} mentioned you in a comment on task "{task.title}"',
            link=f"/projects/{task.card_id}", entity_id=task.id,
        )


def add_comment(db: Session, task: Task, data: dict, author: User | None = None, vendor: Vendor | None = None) -> TaskComment:
    content = (data.get("content") or "").strip()
    if not content:
        raise HTTPException(status_code=400, detail="Content is required")

    parent_id = data.get("parent_id") or None
    if parent_id:
        parent = db.query(TaskComment).filter(
            TaskComment.id == parent_id, TaskComment.task_id == task.id, TaskComment.deleted_at.is_(None)
        ).first()
        if not parent:
            raise HTTPException(status_code=400, detail="Invalid parent comment")
        # replies stay one level deep
        parent_id = parent.parent_id or parent.id

    comment = TaskComment(
        task_id=task.id, parent_id=parent_id, content=content,
        author_id=author.id if author else None, vendor_id=vendor.id if vendor else None,
    )
    db.add(comment)
    db.flush()
    return comment


@router.get("/tasks/{task_id}/comments")
def list_comments(task_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return task_comments(db, get_company_task(db, user, task_id))


@router.post("/tasks/{task_id}/comments", status_code=201)
def create_comment(task_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    task = get_company_task(db, user, task_id)
    comment = add_comment(db, task, data, author=user)

    mentioned = _mentionable(db, user.company_id, parse_mentions(comment.content), user.id)
    for u in mentioned:
        comment.mentions.append(TaskCommentMention(user_id=u.id))
    _notify_mentions(db, task, user, mentioned)

    log_activity(
        db, user.company_id, user.id, "comment_added", "task",
        entity_id=task.id, entity_name=task.title,
        description=f"Added comment to task: {task.title}", card_id=task.card_id,
    )
    db.commit()
    db.refresh(comment)
    return serialize_comment(comment)


def _own_comment(db: Session, user: User, comment_id: str) -> TaskComment:
    comment = db.query(TaskComment).filter(
        TaskComment.id == comment_id, TaskComment.author_id == user.id, TaskComment.deleted_at.is_(None)
    ).first()
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    return comment


@router.patch("/comments/{comment_id}")
def update_comment(comment_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    comment = _own_comment(db, user, comment_id)
    content = (data.get("content") or "").strip()
    if not content:
        raise HTTPException(status_code=400, detail="Content is required")

    wanted = {u.id: u for u in _mentionable(db, user.company_id, parse_mentions(content), user.id)}
    existing = {m.user_id for m in comment.mentions}
    comment.mentions = [m for m in comment.mentions if m.user_id in wanted]
    added = [u for uid, u in wanted.items() if uid not in existing]
    for u in added:
        comment.mentions.append(TaskCommentMention(user_id=u.id))
    _notify_mentions(db, comment.task, user, added)

    comment.content = content
    comment.edited_at = datetime.utcnow()
    db.commit()
    db.refresh(comment)
    return serialize_comment(comment)


@router.delete("/comments/{comment_id}")
def delete_comment(comment_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    comment = _own_comment(db, user, comment_id)
    now = datetime.utcnow()
    comment.deleted_at = now
    for reply in comment.replies:
        if not reply.deleted_at:
            reply.deleted_at = now
    db.commit()
    return {"ok": True}
