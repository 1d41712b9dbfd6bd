# main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from auth.routes import router as auth_router
from courses.routes import router as courses_router
from subscription.routes import router as subscription_router
from shop.routes import router as shop_router
from payment.routes import router as payment_router
from storage.routes import router as upload_router
from progress.routes import router as progress_router
from notifications.routes import router as notifications_router
from support.routes import router as support_router
from dashboard.routes import router as dashboard_router
from admin.routes import router as admin_router
from scheduler.tasks import start_scheduler, expire_lapsed_subscriptions
from errors import register_exception_handlers
from config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Course Platform Backend",
    description="API for tiered courses, file shop and subscriptions",
    version="0.1.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(auth_router)
app.include_router(courses_router)
app.include_router(subscription_router)
app.include_router(shop_router)
app.include_router(payment_router)
app.include_router(upload_router)
app.include_router(progress_router)
app.include_router(notifications_router)
app.include_router(support_router)
app.include_router(dashboard_router)
app.include_router(admin_router)


@app.on_event("startup")
async def startup_event():
    """Run initial tasks on startup."""
    if not settings.ENABLE_SCHEDULER:
        logger.info("Scheduler disabled")
        return
    expire_lapsed_subscriptions()
    start_scheduler()


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Welcome to Course Platform Backend!"}
