from datetime import datetime
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

from conftest import auth_headers
from shop.models import FilePurchase
from subscription.models import Subscription


def subscribe(db, user, tier, status="active", provider_id="sub_1"):
    subscription = Subscription(user_id=user.id, tier_id=tier.id, status=status, payment_provider_id=provider_id)
    db.add(subscription)
    db.commit()
    return subscription


def test_tiers_are_public_and_ordered(client, tiers):
    response = client.get("/tiers")
    assert response.status_code == 200
    assert [t["permission_level"] for t in response.json()] == [1, 2, 3]


def test_subscription_checkout_session(client, gateway, make_user, tiers):
    user = make_user("buyer@example.com")
    response = client.post("/stripe/checkout", json={"tierId": tiers.pro.id}, headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json() == {"sessionId": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}

    kind, kwargs = gateway.checkouts[0]
    assert kind == "subscription"
    assert kwargs["metadata"] == {"userId": user.id, "tierId": str(tiers.pro.id)}
    assert kwargs["price_monthly"] == Decimal("29.90")
    assert "{CHECKOUT_SESSION_ID}" in kwargs["success_url"]


def test_free_tier_is_applied_without_processor(client, db, gateway, make_user, tiers):
    user = make_user("buyer@example.com", tiers.pro)
    response = client.post("/stripe/checkout", json={"tierId": tiers.free.id}, headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["message"] == "Tier updated successfully"
    assert gateway.checkouts == []
    db.refresh(user)
    assert user.profile.tier_id == tiers.free.id


def test_subscription_checkout_errors(client, db, make_user, tiers):
    user = make_user("buyer@example.com")
    headers = auth_headers(user)
    assert client.post("/stripe/checkout", json={}, headers=headers).status_code == 400
    assert client.post("/stripe/checkout", json={"tierId": 99}, headers=headers).status_code == 404
    assert client.post("/stripe/checkout", json={"tierId": tiers.pro.id}).status_code == 401

    subscribe(db, user, tiers.pro)
    response = client.post("/stripe/checkout", json={"tierId": tiers.pro.id}, headers=headers)
    assert response.status_code == 400


def test_subscription_checkout_redirects(client, db, make_user, tiers):
    response = client.get(f"/stripe/checkout?tierId={tiers.pro.id}", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "http://localhost:3000/login?redirect=/plans"

    user = make_user("buyer@example.com")
    headers = auth_headers(user)
    response = client.get(f"/stripe/checkout?tierId={tiers.pro.id}", headers=headers, follow_redirects=False)
    assert response.headers["location"] == "https://checkout.stripe.test/cs_test_1"

    response = client.get("/stripe/checkout?tierId=abc", headers=headers, follow_redirects=False)
    assert response.headers["location"].endswith("/plans?error=invalid_tier")

    response = client.get("/stripe/checkout", headers=headers, follow_redirects=False)
    assert response.headers["location"].endswith("/plans?error=missing_tier")

    response = client.get("/stripe/checkout?tierId=99", headers=headers, follow_redirects=False)
    assert response.headers["location"].endswith("/plans?error=tier_not_found")

    subscribe(db, user, tiers.pro)
    response = client.get(f"/stripe/checkout?tierId={tiers.pro.id}", headers=headers, follow_redirects=False)
    assert response.headers["location"].endswith("/plans?error=already_subscribed")

    response = client.get(f"/stripe/checkout?tierId={tiers.free.id}", headers=headers, follow_redirects=False)
    assert response.headers["location"].endswith("/plans?success=free_tier_activated")


def test_cancel_marks_canceled_and_keeps_tier(client, db, gateway, make_user, tiers):
    user = make_user("buyer@example.com", tiers.pro)
    subscription = subscribe(db, user, tiers.pro)

    response = client.post("/stripe/cancel", headers=auth_headers(user))
    assert response.status_code == 200
    assert gateway.canceled == ["sub_1"]
    db.refresh(subscription)
    db.refresh(user)
    assert subscription.status == "canceled"
    assert user.profile.tier_id == tiers.pro.id


def test_cancel_survives_processor_failure(client, db, gateway, make_user, tiers):
    user = make_user("buyer@example.com", tiers.pro)
    subscription = subscribe(db, user, tiers.pro)
    gateway.fail_cancel = True

    assert client.post("/stripe/cancel", headers=auth_headers(user)).status_code == 200
    db.refresh(subscription)
    assert subscription.status == "canceled"


def test_cancel_without_subscription(client, make_user):
    assert client.post("/stripe/cancel", headers=auth_headers(make_user("buyer@example.com"))).status_code == 404


def test_file_checkout_session(client, gateway, catalog, make_user):
    user = make_user("buyer@example.com")
    response = client.post("/stripe/checkout-file", json={"fileProductId": "f1"}, headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["sessionId"] == "cs_test_1"

    kind, kwargs = gateway.checkouts[0]
    assert kind == "payment"
    assert kwargs["metadata"] == {"userId": user.id, "fileProductId": "f1", "type": "file_product"}
    assert kwargs["success_url"] == "http://localhost:3000/loja/success?session_id={CHECKOUT_SESSION_ID}"


def test_product_checkout_session(client, gateway, catalog, make_user):
    user = make_user("buyer@example.com")
    response = client.post("/stripe/checkout-product", json={"productId": catalog.bundle.id}, headers=auth_headers(user))
    assert response.status_code == 200
    _, kwargs = gateway.checkouts[0]
    assert kwargs["metadata"] == {"userId": user.id, "productId": catalog.bundle.id, "type": "product"}


def test_shop_checkout_redirects(client, db, catalog, make_user):
    response = client.get("/stripe/checkout-file?fileProductId=f1", follow_redirects=False)
    location = urlparse(response.headers["location"])
    assert location.path == "/login"
    # The item id travels inside the redirect target, not as a separate login parameter
    assert parse_qs(location.query) == {"redirect": ["/loja?fileProductId=f1"]}

    response = client.get("/stripe/checkout-product", follow_redirects=False)
    assert response.headers["location"] == "http://localhost:3000/login?redirect=/loja"

    user = make_user("buyer@example.com")
    headers = auth_headers(user)
    response = client.get("/stripe/checkout-file?fileProductId=f1", headers=headers, follow_redirects=False)
    assert response.headers["location"] == "https://checkout.stripe.test/cs_test_1"

    response = client.get("/stripe/checkout-file?fileProductId=nope", headers=headers, follow_redirects=False)
    assert response.headers["location"].endswith("/loja?error=file_product_not_found")

    response = client.get("/stripe/checkout-product", headers=headers, follow_redirects=False)
    assert response.headers["location"].endswith("/loja?error=missing_product")

    catalog.bundle.is_active = False
    db.commit()
    response = client.get(f"/stripe/checkout-product?productId={catalog.bundle.id}", headers=headers, follow_redirects=False)
    assert response.headers["location"].endswith("/loja?error=product_unavailable")


def test_already_purchased_file(client, db, catalog, make_user):
    user = make_user("buyer@example.com")
    db.add(FilePurchase(
        user_id=user.id, file_product_id="f1", stripe_payment_intent_id="pi_1",
        amount_paid=Decimal("19.90"), purchased_at=datetime.utcnow(),
    ))
    db.commit()
    headers = auth_headers(user)

    response = client.get("/stripe/checkout-file?fileProductId=f1", headers=headers, follow_redirects=False)
    assert response.headers["location"].endswith("/loja?error=already_purchased")

    files = client.get("/shop/files", headers=headers).json()
    assert files[0]["is_purchased"] is True
    purchases = client.get("/shop/purchases", headers=headers).json()
    assert [p["file_product_id"] for p in purchases["files"]] == ["f1"]
    assert purchases["products"] == []


def test_shop_catalogue_is_public(client, catalog):
    files = client.get("/shop/files").json()
    assert [(f["id"], f["is_purchased"]) for f in files] == [("f1", False)]
    products = client.get("/shop/products").json()
    assert {item["file_name"] for item in products[0]["items"]} == {"worksheet.pdf", "exam-bank.pdf"}


def test_file_product_detail(client, db, catalog, make_user):
    response = client.get("/shop/files/f1")
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Exam bank"
    assert body["file_name"] == "exam-bank.pdf"
    assert body["images"] == []
    assert client.get("/shop/files/missing").status_code == 404

    buyer = make_user("buyer@example.com")
    db.add(FilePurchase(
        user_id=buyer.id, file_product_id="f1", stripe_payment_intent_id="pi_1",
        amount_paid=Decimal("19.90"), purchased_at=datetime.utcnow(),
    ))
    catalog.file_product.is_active = False
    db.commit()

    # Retired products stay visible to the people who bought them
    assert client.get("/shop/files/f1").status_code == 404
    response = client.get("/shop/files/f1", headers=auth_headers(buyer))
    assert response.status_code == 200
    assert response.json()["is_purchased"] is True


def test_bundle_detail_lists_files(client, db, catalog, make_user):
    bundle_id = catalog.bundle.id
    body = client.get(f"/shop/products/{bundle_id}").json()
    assert body["attachment_count"] == 2
    assert [a["file_name"] for a in body["attachments"]] == ["exam-bank.pdf", "worksheet.pdf"]
    assert body["is_purchased"] is False

    catalog.bundle.is_active = False
    db.commit()
    assert client.get(f"/shop/products/{bundle_id}").status_code == 404
    assert client.get("/shop/products/missing").status_code == 404
