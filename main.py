import os
import time
from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.core.config import APP_NAME, CORS_ORIGINS, UPLOAD_DIR, LOG_LEVEL, LOG_FORMAT, SEED_DEMO
from app.core.currency import supported_currencies
from app.core.errors import register_error_handlers
from app.core.logging import setup_logging, get_logger
from app.db.session import engine
from app.models.base import Base
from app.api import (
    auth, company, activities, pipeline, projects, tasks, milestones, budget, estimates,
    documents, vendors, contracts, procurement, purchase_orders, bids, assets, inventory,
    notifications, dashboard, vendor_portal, comments, daily_logs,
)

setup_logging(LOG_LEVEL, json_format=LOG_FORMAT == "json")
logger = get_logger(__name__)

app = FastAPI(title=f"{APP_NAME} API", version="1.0.0")
register_error_handlers(app)


class NoCacheMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms")
        return response


app.add_middleware(NoCacheMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=CORS_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")

for module in (
    auth, company, activities, pipeline, projects, tasks, milestones, budget, estimates,
    documents, vendors, contracts, procurement, purchase_orders, bids, assets, inventory,
    notifications, dashboard, vendor_portal, comments, daily_logs,
):
    app.include_router(module.router)


@app.on_event("startup")
def startup():
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    Base.metadata.create_all(bind=engine)
    if SEED_DEMO:
        _seed_defaults()


def _seed_defaults():
    from app.db.session import SessionLocal
    from app.core.auth import hash_password
    from app.api.auth import DEFAULT_STAGES
    from app.models.models import (
        Company, User, Role, Stage, Card, Task, Vendor, VendorType, VendorStatus, BudgetItem
    )
    db = SessionLocal()
    try:
        if db.query(User).count() == 0:
            company = Company(name="Demo Builders", currency="USD")
            db.add(company)
            db.flush()

            admin = User(
                company_id=company.id,
                email="admin@buildflow.dev",
                hashed_password=hash_password("admin123"),
                first_name="Admin",
                last_name="User",
                role=Role.ADMIN,
            )
            db.add(admin)
            stages = [Stage(company_id=company.id, name=name, color=color, order=i)
                      for i, (name, color) in enumerate(DEFAULT_STAGES)]
            db.add_all(stages)
            db.flush()

            card = Card(
                company_id=company.id, stage_id=stages[-1].id, owner_id=admin.id,
                title="Kitchen Remodel - Oak St", value=48000,
                contact_name="Dana Whitfield", contact_email="dana@example.com",
            )
            db.add(card)
            db.flush()

            db.add_all([
                Task(card_id=card.id, created_by_id=admin.id, title="Demolition", order=0),
                Task(card_id=card.id, created_by_id=admin.id, title="Rough plumbing", order=1),
                Task(card_id=card.id, created_by_id=admin.id, title="Cabinet install", order=2),
                BudgetItem(card_id=card.id, name="Contract value", amount=48000),
                BudgetItem(card_id=card.id, name="Cabinets", amount=9200, is_expense=True),
                Vendor(company_id=company.id, name="Summit Plumbing", type=VendorType.SUBCONTRACTOR,
                       status=VendorStatus.VERIFIED, email="office@summitplumbing.example"),
            ])
            db.commit()
            logger.info("Seeded demo company", extra={"company_id": company.id})
    except Exception as e:
        db.rollback()
        logger.error(f"Seed error: {e}", exc_info=True)
    finally:
        db.close()


@app.get("/api/config")
def get_config():
    return {"app_name": APP_NAME, "currencies": supported_currencies()}


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=5000)
