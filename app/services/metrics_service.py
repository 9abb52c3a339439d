from app.models.models import (
    Card, TaskStatus, ProjectMilestone, ChecklistStatus, VendorContract,
    ChangeOrderStatus,
)

LOW_STOCK_THRESHOLD = 10

REVIEW_WEIGHTS = {
    "quality": 0.20,
    "timeliness": 0.15,
    "communication": 0.15,
    "professionalism": 0.10,
    "pricing_accuracy": 0.15,
    "safety_compliance": 0.10,
    "problem_resolution": 0.10,
    "documentation": 0.05,
}


def percent(part, whole) -> int:
    return round(part / whole * 100) if whole else 0


def budget_totals(items) -> dict:
    total_budget = sum(i.total for i in items if not i.is_expense)
    expenses = [i for i in items if i.is_expense]
    total_expenses = sum(i.total for i in expenses)
    paid = sum(i.total for i in expenses if i.is_paid)
    return {
        "total_budget": total_budget,
        "total_expenses": total_expenses,
        "paid_expenses": paid,
        "unpaid_expenses": total_expenses - paid,
        "profit": total_budget - total_expenses,
    }


def project_metrics(card: Card) -> dict:
    totals = budget_totals(card.budget_items)
    task_count = len(card.tasks)
    completed = len([t for t in card.tasks if t.status == TaskStatus.COMPLETED])
    return {
        "total_budget": totals["total_budget"],
        "total_expenses": totals["total_expenses"],
        "profit": totals["profit"],
        "task_count": task_count,
        "completed_tasks": completed,
        "progress": percent(completed, task_count),
    }


def milestone_progress(m: ProjectMilestone) -> dict:
    total = len(m.tasks)
    completed = len([t for t in m.tasks if t.status == TaskStatus.COMPLETED])
    checklist_total = len(m.checklist_items)
    checklist_done = len([c for c in m.checklist_items if c.status == ChecklistStatus.COMPLETED])
    return {
        "total_tasks": total,
        "completed_tasks": completed,
        "progress": percent(completed, total),
        "checklist_total": checklist_total,
        "checklist_completed": checklist_done,
        "checklist_progress": percent(checklist_done, checklist_total),
    }


def overall_rating(scores: dict) -> float | None:
    """Weighted mean over the dimensions that were scored."""
    present = {k: v for k, v in scores.items() if k in REVIEW_WEIGHTS and v is not None}
    if not present:
        return None
    weight = sum(REVIEW_WEIGHTS[k] for k in present)
    return round(sum(v * REVIEW_WEIGHTS[k] for k, v in present.items()) / weight, 1)


def average_rating(reviews) -> float | None:
    if not reviews:
        return None
    return round(sum(r.overall_rating for r in reviews) / len(reviews), 1)


def contract_summary(contract: VendorContract) -> dict:
    line_total = sum(li.total_price for li in contract.line_items)
    original = contract.total_sum or line_total
    by_status = {s.value: 0 for s in ChangeOrderStatus}
    approved = pending = 0.0
    for co in contract.change_orders:
        by_status[co.status.value] += 1
        if co.status == ChangeOrderStatus.APPROVED:
            approved += co.total
        elif co.status == ChangeOrderStatus.PENDING_APPROVAL:
            pending += co.total
    current = original + approved
    paid = sum(p.amount for p in contract.payments)
    return {
        "original_value": original,
        "line_items_total": line_total,
        "approved_changes": approved,
        "pending_changes": pending,
        "current_value": current,
        "potential_value": current + pending,
        "net_change": approved,
        "percent_change": round(approved / original * 100, 2) if original else 0,
        "total_paid": paid,
        "balance": current - paid,
        "change_order_counts": by_status,
    }


def is_low_stock(material) -> bool:
    """Below the material's minimum when one is set, else below the default threshold."""
    if material.min_stock_level is not None:
        return material.quantity <= material.min_stock_level
    return material.quantity < LOW_STOCK_THRESHOLD
