from datetime import datetime
from decimal import Decimal

from conftest import auth_headers
from auth.models import AdminActionLog, User
from courses.models import Attachment, Course
from shop.models import FileProduct, FileProductImage, FilePurchase, ProductAttachment, ProductPurchase


def test_admin_routes_require_admin(client, make_user):
    assert client.get("/admin/users").status_code == 401
    assert client.get("/admin/users", headers=auth_headers(make_user("user@example.com"))).status_code == 403


def test_course_crud_is_logged(client, db, make_user, tiers):
    admin = make_user("admin@example.com", is_admin=True)
    headers = auth_headers(admin)

    response = client.post("/admin/courses", json={"title": "New", "minimum_tier_id": tiers.pro.id}, headers=headers)
    assert response.status_code == 200
    course_id = response.json()["id"]
    assert response.json()["is_published"] is False

    module = client.post(f"/admin/courses/{course_id}/modules", json={"title": "M1"}, headers=headers).json()
    lesson = client.post(f"/admin/modules/{module['id']}/lessons", json={"title": "L1"}, headers=headers).json()
    client.put(f"/admin/courses/{course_id}", json={"is_published": True}, headers=headers)

    detail = client.get(f"/admin/courses/{course_id}", headers=headers).json()
    assert detail["is_published"] is True
    assert detail["modules"][0]["lessons"][0]["id"] == lesson["id"]

    assert client.post("/admin/courses", json={"title": "Bad", "minimum_tier_id": 99}, headers=headers).status_code == 400

    client.delete(f"/admin/courses/{course_id}", headers=headers)
    assert db.query(Course).filter(Course.id == course_id).first() is None

    actions = [log.action for log in db.query(AdminActionLog).filter(AdminActionLog.admin_id == admin.id).all()]
    assert len(actions) == 5
    assert actions[0] == f"Created course {course_id}"
    logs = client.get("/admin/logs", headers=headers).json()
    assert len(logs) == 5


def test_user_tier_and_admin_flag(client, db, make_user, tiers):
    admin = make_user("admin@example.com", is_admin=True)
    user = make_user("user@example.com")
    headers = auth_headers(admin)

    response = client.patch(f"/admin/users/{user.id}", json={"tier_id": tiers.premium.id}, headers=headers)
    assert response.status_code == 200
    assert response.json()["tier_name"] == "Premium"

    assert client.patch(f"/admin/users/{user.id}", json={"tier_id": 99}, headers=headers).status_code == 404
    assert client.patch(f"/admin/users/{admin.id}", json={"is_admin": False}, headers=headers).status_code == 400

    premium_users = client.get(f"/admin/users?tier_id={tiers.premium.id}", headers=headers).json()
    assert [u["email"] for u in premium_users] == ["user@example.com"]


def test_delete_user_cascades_purchases(client, db, catalog, make_user):
    admin = make_user("admin@example.com", is_admin=True)
    user = make_user("user@example.com")
    db.add(FilePurchase(
        user_id=user.id, file_product_id="f1", stripe_payment_intent_id="pi_1",
        amount_paid=Decimal("19.90"), purchased_at=datetime.utcnow(),
    ))
    db.commit()

    assert client.delete(f"/admin/users/{user.id}", headers=auth_headers(admin)).status_code == 200
    assert db.query(User).filter(User.email == "user@example.com").first() is None
    assert db.query(FilePurchase).count() == 0
    assert client.delete(f"/admin/users/{admin.id}", headers=auth_headers(admin)).status_code == 400


def test_tier_management(client, db, make_user, tiers):
    headers = auth_headers(make_user("admin@example.com", is_admin=True))

    response = client.post(
        "/admin/tiers", json={"name": "Gold", "price_monthly": "99.90", "permission_level": 4}, headers=headers
    )
    assert response.status_code == 200
    gold_id = response.json()["id"]
    assert client.post(
        "/admin/tiers", json={"name": "Dup", "price_monthly": "1.00", "permission_level": 4}, headers=headers
    ).status_code == 400

    assert client.put(f"/admin/tiers/{gold_id}", json={"download_limit": 50}, headers=headers).json()["download_limit"] == 50
    # The admin's own profile sits on the free tier
    assert client.delete(f"/admin/tiers/{tiers.free.id}", headers=headers).status_code == 400
    assert client.delete(f"/admin/tiers/{gold_id}", headers=headers).status_code == 200


def test_bundle_items_can_be_replaced(client, db, catalog, make_user):
    headers = auth_headers(make_user("admin@example.com", is_admin=True))
    bundle_id = catalog.bundle.id

    response = client.put(
        f"/admin/products/{bundle_id}",
        json={"attachment_ids": [catalog.premium_attachment.id, catalog.pro_attachment.id]},
        headers=headers,
    )
    assert response.status_code == 200
    assert {item["attachment_id"] for item in response.json()["items"]} == {
        catalog.premium_attachment.id, catalog.pro_attachment.id,
    }
    assert db.query(ProductAttachment).filter(ProductAttachment.product_id == bundle_id).count() == 2

    response = client.put(f"/admin/products/{bundle_id}", json={"attachment_ids": ["missing"]}, headers=headers)
    assert response.status_code == 404


def test_sold_file_product_cannot_be_deleted(client, db, catalog, make_user):
    user = make_user("buyer@example.com")
    db.add(FilePurchase(
        user_id=user.id, file_product_id="f1", stripe_payment_intent_id="pi_1",
        amount_paid=Decimal("19.90"), purchased_at=datetime.utcnow(),
    ))
    db.commit()
    headers = auth_headers(make_user("admin@example.com", is_admin=True))

    assert client.delete("/admin/file-products/f1", headers=headers).status_code == 400
    response = client.put("/admin/file-products/f1", json={"is_active": False}, headers=headers)
    assert response.json()["is_active"] is False
    assert client.get("/shop/files").json() == []


def test_user_update_accepts_camel_case(client, db, make_user, tiers):
    headers = auth_headers(make_user("admin@example.com", is_admin=True))
    user = make_user("user@example.com")

    response = client.patch(f"/admin/users/{user.id}", json={"tierId": tiers.premium.id, "isAdmin": True}, headers=headers)
    assert response.status_code == 200
    db.refresh(user)
    assert user.profile.tier_id == tiers.premium.id
    assert user.profile.is_admin is True


def test_sold_attachment_cannot_be_deleted(client, db, catalog, make_user):
    buyer = make_user("buyer@example.com")
    db.add(FilePurchase(
        user_id=buyer.id, file_product_id="f1", stripe_payment_intent_id="pi_1",
        amount_paid=Decimal("19.90"), purchased_at=datetime.utcnow(),
    ))
    db.commit()
    headers = auth_headers(make_user("admin@example.com", is_admin=True))

    response = client.delete(f"/admin/attachments/{catalog.premium_attachment.id}", headers=headers)
    assert response.status_code == 400
    assert db.query(FileProduct).filter(FileProduct.id == "f1").first() is not None


def test_deleting_attachment_drops_unsold_listings(client, db, catalog, make_user):
    headers = auth_headers(make_user("admin@example.com", is_admin=True))

    response = client.delete(f"/admin/attachments/{catalog.free_attachment.id}", headers=headers)
    assert response.status_code == 200
    bundles = client.get("/shop/products").json()
    assert [item["file_name"] for item in bundles[0]["items"]] == ["exam-bank.pdf"]

    assert client.delete(f"/admin/attachments/{catalog.premium_attachment.id}", headers=headers).status_code == 200
    assert db.query(FileProduct).count() == 0
    assert db.query(ProductAttachment).count() == 0
    assert client.get("/shop/files").json() == []


def test_course_with_bundled_sales_cannot_be_deleted(client, db, catalog, make_user):
    buyer = make_user("buyer@example.com")
    db.add(ProductPurchase(
        user_id=buyer.id, product_id=catalog.bundle.id, stripe_payment_intent_id="pi_2",
        amount_paid=Decimal("39.90"), purchased_at=datetime.utcnow(),
    ))
    db.commit()
    headers = auth_headers(make_user("admin@example.com", is_admin=True))

    assert client.delete(f"/admin/lessons/{catalog.free_lesson.id}", headers=headers).status_code == 400
    assert client.delete(f"/admin/courses/{catalog.free_course.id}", headers=headers).status_code == 400
    assert db.query(Attachment).filter(Attachment.id == catalog.free_attachment.id).first() is not None
    # Courses without sold files still go
    assert client.delete(f"/admin/courses/{catalog.pro_course.id}", headers=headers).status_code == 200
    assert db.query(Course).count() == 1


def test_file_product_gallery(client, db, catalog, make_user):
    headers = auth_headers(make_user("admin@example.com", is_admin=True))

    first = client.post(
        "/admin/file-products/f1/images", json={"image_url": "http://cdn/a.png", "display_order": 2}, headers=headers
    ).json()
    client.post("/admin/file-products/f1/images", json={"image_url": "http://cdn/b.png", "display_order": 1}, headers=headers)
    assert client.post(
        "/admin/file-products/missing/images", json={"image_url": "http://cdn/c.png"}, headers=headers
    ).status_code == 404

    images = client.get("/shop/files/f1").json()["images"]
    assert [image["image_url"] for image in images] == ["http://cdn/b.png", "http://cdn/a.png"]

    response = client.put(f"/admin/file-product-images/{first['id']}", json={"display_order": 0}, headers=headers)
    assert response.json()["display_order"] == 0
    images = client.get("/shop/files/f1").json()["images"]
    assert images[0]["id"] == first["id"]

    assert client.delete(f"/admin/file-product-images/{first['id']}", headers=headers).status_code == 200
    assert client.delete(f"/admin/file-product-images/{first['id']}", headers=headers).status_code == 404
    assert db.query(FileProductImage).count() == 1
