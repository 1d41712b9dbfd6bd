"""Shared fixtures: in-memory database, fake storage and payment gateways."""
import hashlib
import hmac
import json
import os
import time
from decimal import Decimal
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["ENABLE_SCHEDULER"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from auth.models import Profile, User  # noqa: E402
from auth.services import AuthService  # noqa: E402
from config import settings  # noqa: E402
from courses.models import Attachment, Course, Lesson, Module  # noqa: E402
from database import Base, get_db  # noqa: E402
from dependencies import get_payment_gateway, get_storage_client  # noqa: E402
from errors import UpstreamError  # noqa: E402
from main import app  # noqa: E402
from payment.gateway import CheckoutSession  # noqa: E402
from shop.models import FileProduct, Product, ProductAttachment  # noqa: E402
from storage.client import StorageClient  # noqa: E402
from subscription.models import Tier  # noqa: E402

WEBHOOK_SECRET = "whsec_test_secret"


class FakeStorage(StorageClient):
    """Real URL signing; existence checks answered from an in-memory set."""

    def __init__(self):
        super().__init__(
            endpoint_url="http://minio:9000",
            public_url="http://localhost:9000",
            region="us-east-1",
            access_key="test-access",
            secret_key="test-secret",
            buckets={"videos": "videos", "attachments": "attachments", "thumbnails": "thumbnails"},
        )
        self.objects = set()

    def object_exists(self, bucket, key):
        return (bucket, key) in self.objects


class FakeGateway:
    def __init__(self):
        self.checkouts = []
        self.canceled = []
        self.subscriptions = {}
        self.fail_cancel = False

    def _session(self, kind, kwargs):
        self.checkouts.append((kind, kwargs))
        session_id = f"cs_test_{len(self.checkouts)}"
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.test/{session_id}")

    def create_subscription_checkout(self, **kwargs):
        return self._session("subscription", kwargs)

    def create_payment_checkout(self, **kwargs):
        return self._session("payment", kwargs)

    def retrieve_subscription(self, subscription_id):
        return self.subscriptions[subscription_id]

    def cancel_at_period_end(self, subscription_id):
        if self.fail_cancel:
            raise UpstreamError("stripe", "boom")
        self.canceled.append(subscription_id)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(db, storage, gateway, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage_client] = lambda: storage
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def tiers(db):
    free = Tier(id=1, name="Free", price_monthly=0, download_limit=2, permission_level=1)
    pro = Tier(id=2, name="Professor Pro", price_monthly=Decimal("29.90"), download_limit=None, permission_level=2)
    premium = Tier(id=3, name="Premium", price_monthly=Decimal("49.90"), download_limit=None, permission_level=3)
    db.add_all([free, pro, premium])
    db.commit()
    return SimpleNamespace(free=free, pro=pro, premium=premium)


@pytest.fixture
def make_user(db, tiers):
    def _make(email, tier=None, is_admin=False, user_id=None):
        user = User(email=email, name=email.split("@")[0], password_hash="not-a-real-hash")
        if user_id:
            user.id = user_id
        user.profile = Profile(tier_id=(tier or tiers.free).id, is_admin=is_admin)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


def auth_headers(user):
    token = AuthService.create_access_token({"sub": user.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def catalog(db, tiers):
    """A free course, a pro course and a standalone premium file for sale."""
    free_course = Course(title="Basics", minimum_tier_id=tiers.free.id, is_published=True)
    free_module = Module(title="Intro", order=0)
    free_lesson = Lesson(title="Welcome", order=0, storage_key="course-1/lesson-1/welcome.mp4")
    free_attachment = Attachment(
        file_name="worksheet.pdf", file_type="pdf", minimum_tier_id=tiers.free.id,
        file_url="http://localhost:9000/attachments/course-1/attachment-1/worksheet.pdf",
    )
    free_lesson.attachments.append(free_attachment)
    free_module.lessons.append(free_lesson)
    free_course.modules.append(free_module)

    pro_course = Course(title="Advanced", minimum_tier_id=tiers.pro.id, is_published=True)
    pro_module = Module(title="Deep dive", order=0)
    pro_lesson = Lesson(title="Planning", order=0, video_url="videos/course-2/lesson-2/planning.mp4")
    pro_attachment = Attachment(
        file_name="plans.docx", file_type="docx", minimum_tier_id=tiers.free.id,
        file_url="course-2/attachment-2/plans.docx",
    )
    pro_lesson.attachments.append(pro_attachment)
    pro_module.lessons.append(pro_lesson)
    pro_course.modules.append(pro_module)

    premium_attachment = Attachment(
        file_name="exam-bank.pdf", file_type="pdf", minimum_tier_id=tiers.premium.id,
        file_url="attachments/standalone/exam-bank.pdf",
    )
    db.add_all([free_course, pro_course, premium_attachment])
    db.commit()

    file_product = FileProduct(
        id="f1", attachment_id=premium_attachment.id, title="Exam bank", price=Decimal("19.90"), is_active=True
    )
    bundle = Product(title="Classroom kit", price=Decimal("39.90"), is_active=True)
    bundle.items = [
        ProductAttachment(attachment_id=free_attachment.id),
        ProductAttachment(attachment_id=premium_attachment.id),
    ]
    db.add_all([file_product, bundle])
    db.commit()

    return SimpleNamespace(
        free_course=free_course,
        free_lesson=free_lesson,
        free_attachment=free_attachment,
        pro_course=pro_course,
        pro_lesson=pro_lesson,
        pro_attachment=pro_attachment,
        premium_attachment=premium_attachment,
        file_product=file_product,
        bundle=bundle,
    )


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Stripe-Signature header for ``payload``."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def signed_event(event: dict, secret: str = WEBHOOK_SECRET, timestamp: int = None):
    payload = json.dumps(event)
    return payload, sign_payload(payload, secret, timestamp)
