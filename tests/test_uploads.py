from urllib.parse import urlparse

from conftest import auth_headers


def test_uploads_are_admin_only(client, catalog, make_user):
    body = {"filename": "intro.mp4", "fileType": "video", "lessonId": catalog.free_lesson.id}
    assert client.post("/upload/request", json=body).status_code == 401
    assert client.post("/upload/request", json=body, headers=auth_headers(make_user("user@example.com"))).status_code == 403


def test_request_validation(client, catalog, make_user):
    headers = auth_headers(make_user("admin@example.com", is_admin=True))

    response = client.post("/upload/request", json={"filename": "intro.mp4", "fileType": "video"}, headers=headers)
    assert response.status_code == 400
    assert response.json() == {"detail": "lessonId is required for video uploads"}

    response = client.post(
        "/upload/request", json={"filename": "intro.exe", "fileType": "video", "lessonId": catalog.free_lesson.id}, headers=headers
    )
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid video format")

    response = client.post("/upload/request", json={"filename": "a.mp3", "fileType": "audio"}, headers=headers)
    assert response.status_code == 400

    response = client.post("/upload/request", json={"filename": "a.mp4", "fileType": "video", "lessonId": "missing"}, headers=headers)
    assert response.status_code == 404


def test_video_upload_round_trip(client, db, storage, catalog, make_user):
    headers = auth_headers(make_user("admin@example.com", is_admin=True))
    lesson = catalog.free_lesson

    response = client.post(
        "/upload/request", json={"filename": "Aula 1.mp4", "fileType": "video", "lessonId": lesson.id}, headers=headers
    )
    assert response.status_code == 200
    ticket = response.json()
    assert ticket["bucket"] == "videos"
    assert ticket["expiresIn"] == 3600
    assert ticket["storageKey"].startswith(f"course-{catalog.free_course.id}/lesson-{lesson.id}/Aula-1-")
    assert urlparse(ticket["uploadUrl"]).path == f"/videos/{ticket['storageKey']}"

    complete = {"storageKey": ticket["storageKey"], "fileType": "video", "lessonId": lesson.id, "duration": 95}
    response = client.post("/upload/complete", json=complete, headers=headers)
    assert response.status_code == 404
    assert response.json() == {"detail": "File not found in storage. Upload may have failed."}

    storage.objects.add(("videos", ticket["storageKey"]))
    response = client.post("/upload/complete", json=complete, headers=headers)
    assert response.status_code == 200
    assert response.json()["storageKey"] == ticket["storageKey"]

    db.refresh(lesson)
    assert lesson.storage_key == ticket["storageKey"]
    assert lesson.duration == 95


def test_attachment_upload_records_file_url(client, db, storage, catalog, make_user):
    headers = auth_headers(make_user("admin@example.com", is_admin=True))
    attachment = catalog.premium_attachment

    ticket = client.post(
        "/upload/request", json={"filename": "bank.pdf", "fileType": "attachment", "attachmentId": attachment.id}, headers=headers
    ).json()
    # Standalone attachments are keyed under their own id
    assert ticket["storageKey"].startswith(f"course-{attachment.id}/attachment-{attachment.id}/bank-")

    storage.objects.add(("attachments", ticket["storageKey"]))
    response = client.post(
        "/upload/complete",
        json={"storageKey": ticket["storageKey"], "fileType": "attachment", "attachmentId": attachment.id},
        headers=headers,
    )
    assert response.status_code == 200
    db.refresh(attachment)
    assert attachment.file_url == response.json()["fileUrl"]
    assert attachment.file_url.startswith("http://localhost:9000/attachments/")


def test_complete_rejects_unknown_bucket(client, catalog, make_user):
    headers = auth_headers(make_user("admin@example.com", is_admin=True))
    response = client.post(
        "/upload/complete",
        json={"storageKey": "x.mp4", "fileType": "video", "lessonId": catalog.free_lesson.id, "bucket": "elsewhere"},
        headers=headers,
    )
    assert response.status_code == 400
