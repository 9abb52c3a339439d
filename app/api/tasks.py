from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.auth import get_current_user
from app.models.models import (
    Task, TaskStatus, TaskCategory, ProjectMilestone, Priority, User, Vendor, Card
)
from app.api.common import (
    parse_datetime, parse_enum, parse_number, parse_int, get_company_card, get_company_task,
    next_order, user_brief,
)
from app.services.activity_service import log_activity
from app.services.metrics_service import milestone_progress

router = APIRouter(prefix="/api", tags=["tasks"])

DEFAULT_CATEGORY_COLOR = "#6366f1"


def serialize_category(c: TaskCategory) -> dict:
    return {
        "id": c.id,
        "card_id": c.card_id,
        "name": c.name,
        "color": c.color,
        "order": c.order,
        "task_count": len(c.tasks),
    }


def serialize_task(t: Task) -> dict:
    return {
        "id": t.id,
        "card_id": t.card_id,
        "title": t.title,
        "description": t.description,
        "status": t.status.value,
        "priority": t.priority.value,
        "start_date": str(t.start_date) if t.start_date else None,
        "due_date": str(t.due_date) if t.due_date else None,
        "completed_at": str(t.completed_at) if t.completed_at else None,
        "order": t.order,
        "estimated_cost": t.estimated_cost,
        "actual_cost": t.actual_cost,
        "category_id": t.category_id,
        "category": {"id": t.category.id, "name": t.category.name, "color": t.category.color} if t.category else None,
        "milestone_id": t.milestone_id,
        "assignee": user_brief(t.assignee),
        "vendor": {"id": t.vendor.id, "name": t.vendor.name} if t.vendor else None,
        "created_by": user_brief(t.created_by),
        "dependency_ids": [d.id for d in t.dependencies],
        "created_at": str(t.created_at),
        "updated_at": str(t.updated_at),
    }


def sort_tasks(tasks) -> list[Task]:
    """Category order first, uncategorised tasks last, then task order."""
    return sorted(tasks, key=lambda t: (
        t.category is None,
        t.category.order if t.category else 0,
        t.order,
        t.created_at or datetime.min,
    ))


def _get_category(db: Session, user: User, category_id: str) -> TaskCategory:
    cat = db.query(TaskCategory).join(Card, TaskCategory.card_id == Card.id).filter(
        TaskCategory.id == category_id, Card.company_id == user.company_id
    ).first()
    if not cat:
        raise HTTPException(status_code=404, detail="Category not found")
    return cat


def _apply_task_refs(db: Session, user: User, task: Task, card: Card, data: dict):
    if data.get("assignee_id"):
        if not db.query(User).filter(User.id == data["assignee_id"], User.company_id == user.company_id).first():
            raise HTTPException(status_code=400, detail="Invalid assignee")
    if "assignee_id" in data:
        task.assignee_id = data["assignee_id"] or None

    if data.get("vendor_id"):
        if not db.query(Vendor).filter(Vendor.id == data["vendor_id"], Vendor.company_id == user.company_id).first():
            raise HTTPException(status_code=400, detail="Invalid vendor")
    if "vendor_id" in data:
        task.vendor_id = data["vendor_id"] or None

    if data.get("category_id"):
        if not db.query(TaskCategory).filter(TaskCategory.id == data["category_id"], TaskCategory.card_id == card.id).first():
            raise HTTPException(status_code=400, detail="Invalid category")
    if "category_id" in data:
        task.category_id = data["category_id"] or None

    if data.get("milestone_id"):
        if not db.query(ProjectMilestone).filter(
            ProjectMilestone.id == data["milestone_id"], ProjectMilestone.card_id == card.id
        ).first():
            raise HTTPException(status_code=400, detail="Milestone does not belong to this project")
    if "milestone_id" in data:
        task.milestone_id = data["milestone_id"] or None

    if "dependency_ids" in data:
        ids = [i for i in (data["dependency_ids"] or []) if i]
        if task.id and task.id in ids:
            raise HTTPException(status_code=400, detail="A task cannot depend on itself")
        deps = db.query(Task).filter(Task.id.in_(ids), Task.card_id == card.id).all() if ids else []
        if len(deps) != len(set(ids)):
            raise HTTPException(status_code=400, detail="Dependencies must belong to this project")
        if task.id and any(_depends_on(dep, task.id) for dep in deps):
            raise HTTPException(status_code=400, detail="Cannot create circular dependency")
        task.dependencies = deps


def _depends_on(start: Task, target_id: str) -> bool:
    """True when target_id is reachable from start through its dependency chain."""
    seen = set()
    stack = [start]
    while stack:
        current = stack.pop()
        if current.id == target_id:
            return True
        if current.id in seen:
            continue
        seen.add(current.id)
        stack.extend(current.dependencies)
    return False


def _apply_task_fields(task: Task, data: dict):
    if "description" in data:
        task.description = data["description"]
    if data.get("priority"):
        task.priority = parse_enum(Priority, data["priority"], "priority")
    if "start_date" in data:
        task.start_date = parse_datetime(data["start_date"], "start_date")
    if "due_date" in data:
        task.due_date = parse_datetime(data["due_date"], "due_date")
    if "estimated_cost" in data:
        task.estimated_cost = parse_number(data["estimated_cost"], "estimated_cost")
    if "actual_cost" in data:
        task.actual_cost = parse_number(data["actual_cost"], "actual_cost")
    if data.get("order") not in (None, ""):
        task.order = parse_int(data["order"], "order")


@router.get("/projects/{project_id}/tasks")
def list_tasks(
    project_id: str,
    group_by: str = Query("category"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    card = get_company_card(db, user, project_id)
    tasks = sort_tasks(card.tasks)
    if group_by != "milestone":
        return [serialize_task(t) for t in tasks]

    groups = []
    for m in sorted(card.milestones, key=lambda m: m.order):
        groups.append({
            "milestone": {"id": m.id, "title": m.title, "status": m.status.value, "order": m.order,
                          "target_date": str(m.target_date) if m.target_date else None},
            "progress": milestone_progress(m),
            "tasks": [serialize_task(t) for t in tasks if t.milestone_id == m.id],
        })
    return {
        "groups": groups,
        "unassigned": [serialize_task(t) for t in tasks if not t.milestone_id],
    }


@router.post("/projects/{project_id}/tasks", status_code=201)
def create_task(project_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    title = (data.get("title") or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")

    task = Task(
        card_id=card.id, title=title, status=TaskStatus.TODO, created_by_id=user.id,
        order=next_order(db, Task.order, Task.card_id == card.id),
    )
    _apply_task_fields(task, data)
    _apply_task_refs(db, user, task, card, data)
    db.add(task)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "task_created", "task",
        entity_id=task.id, entity_name=task.title,
        description=f"Created task {task.title}", card_id=card.id,
    )
    db.commit()
    db.refresh(task)
    return serialize_task(task)


@router.get("/tasks/{task_id}")
def get_task(task_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_task(get_company_task(db, user, task_id))


@router.patch("/tasks/{task_id}")
def update_task(task_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    task = get_company_task(db, user, task_id)
    if "title" in data:
        title = (data["title"] or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")
        task.title = title
    _apply_task_fields(task, data)
    _apply_task_refs(db, user, task, task.card, data)

    action = "task_updated"
    if data.get("status"):
        new_status = parse_enum(TaskStatus, data["status"])
        if new_status == TaskStatus.COMPLETED and task.status != TaskStatus.COMPLETED:
            task.completed_at = datetime.utcnow()
            action = "task_completed"
        elif new_status != TaskStatus.COMPLETED:
            task.completed_at = None
        task.status = new_status

    log_activity(
        db, user.company_id, user.id, action, "task",
        entity_id=task.id, entity_name=task.title, card_id=task.card_id,
    )
    db.commit()
    db.refresh(task)
    return serialize_task(task)


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    task = get_company_task(db, user, task_id)
    log_activity(
        db, user.company_id, user.id, "task_deleted", "task",
        entity_id=task.id, entity_name=task.title,
        description=f"Deleted task {task.title}", card_id=task.card_id,
    )
    db.delete(task)
    db.commit()
    return {"ok": True}


@router.post("/tasks/{task_id}/duplicate", status_code=201)
def duplicate_task(task_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    source = get_company_task(db, user, task_id)
    # dependencies are left off the copy
    copy = Task(
        card_id=source.card_id, title=f"{source.title} (Copy)", description=source.description,
        status=TaskStatus.TODO, priority=source.priority,
        start_date=source.start_date, due_date=source.due_date,
        category_id=source.category_id, milestone_id=source.milestone_id,
        assignee_id=source.assignee_id, vendor_id=source.vendor_id,
        estimated_cost=source.estimated_cost, created_by_id=user.id,
        order=next_order(db, Task.order, Task.card_id == source.card_id),
    )
    db.add(copy)
    db.flush()
    log_activity(
        db, user.company_id, user.id, "task_duplicated", "task",
        entity_id=copy.id, entity_name=copy.title,
        description=f"Duplicated task {source.title}", card_id=copy.card_id,
    )
    db.commit()
    db.refresh(copy)
    return serialize_task(copy)


@router.get("/projects/{project_id}/categories")
def list_categories(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    cats = db.query(TaskCategory).filter(TaskCategory.card_id == card.id).order_by(TaskCategory.order).all()
    return [serialize_category(c) for c in cats]


@router.post("/projects/{project_id}/categories", status_code=201)
def create_category(project_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = get_company_card(db, user, project_id)
    name = (data.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")
    cat = TaskCategory(
        card_id=card.id, name=name, color=data.get("color") or DEFAULT_CATEGORY_COLOR,
        order=next_order(db, TaskCategory.order, TaskCategory.card_id == card.id),
    )
    db.add(cat)
    db.commit()
    db.refresh(cat)
    return serialize_category(cat)


@router.patch("/categories/{category_id}")
def update_category(category_id: str, data: dict = Body(...), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    cat = _get_category(db, user, category_id)
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Name is required")
        cat.name = name
    if data.get("color"):
        cat.color = data["color"]
    if data.get("order") not in (None, ""):
        cat.order = parse_int(data["order"], "order")
    db.commit()
    db.refresh(cat)
    return serialize_category(cat)


@router.delete("/categories/{category_id}")
def delete_category(category_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    cat = _get_category(db, user, category_id)
    if cat.tasks:
        raise HTTPException(status_code=400, detail="Cannot delete category with tasks. Please move or delete tasks first.")
    db.delete(cat)
    db.commit()
    return {"ok": True}
