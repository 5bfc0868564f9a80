"""
Тесты отзывов, обратной связи и объявлений.
"""

from datetime import datetime, timedelta, timezone

import pytest

from factories import auth_headers, make_user
from storefront.db.models import Announcement, AuditLog, Review, utcnow


class TestReviews:
    def _post(self, client, user, product_id, rating=5, **extra):
        return client.post(
            "/api/v1/reviews",
            json={"product_id": product_id, "rating": rating, **extra},
            headers=auth_headers(user),
        )

    def test_create_review(self, client, user, product):
        response = self._post(client, user, product.id, 4, title=" Lovely ", comment="Fits well")

        assert response.status_code == 201
        review = response.json()["review"]
        assert review["title"] == "Lovely"
        assert review["user"]["first_name"] == user.first_name

    def test_one_review_per_product(self, client, user, product):
        self._post(client, user, product.id)

        assert self._post(client, user, product.id).status_code == 409

    @pytest.mark.parametrize("rating", [0, 6, None])
    def test_rating_bounds(self, client, user, product, rating):
        response = self._post(client, user, product.id, rating)

        assert response.status_code == 400
        assert response.json()["detail"] == "Rating must be an integer between 1 and 5"

    def test_unverified_user(self, client, db, product):
        unverified = make_user(db, email="fresh@example.com", verified=False)

        assert self._post(client, unverified, product.id).status_code == 403

    def test_unknown_product(self, client, user):
        assert self._post(client, user, "missing").status_code == 404

    def test_admin_list_and_delete(self, client, db, user, admin, product):
        review_id = self._post(client, user, product.id).json()["review"]["id"]

        listed = client.get("/api/v1/reviews", headers=auth_headers(admin)).json()
        assert listed["reviews"][0]["product"]["name"] == product.name

        deleted = client.delete(f"/api/v1/reviews/{review_id}", headers=auth_headers(admin))
        assert deleted.status_code == 200
        assert db.query(Review).count() == 0
        assert db.query(AuditLog).filter(AuditLog.action == "delete_review").count() == 1

    def test_list_requires_admin(self, client, user):
        assert client.get("/api/v1/reviews", headers=auth_headers(user)).status_code == 403


class TestFeedback:
    def test_submit_and_moderate(self, client, user, admin):
        created = client.post(
            "/api/v1/feedback",
            json={"type": "suggestion", "message": "More vintage denim please"},
            headers=auth_headers(user),
        )
        assert created.status_code == 201
        feedback_id = created.json()["feedback"]["id"]

        assert client.get("/api/v1/feedback/featured").json()["feedback"] == []

        updated = client.put(
            f"/api/v1/feedback/{feedback_id}",
            json={"is_featured": True, "is_resolved": True},
            headers=auth_headers(admin),
        )
        assert updated.json()["feedback"]["is_featured"] is True

        featured = client.get("/api/v1/feedback/featured").json()["feedback"]
        assert [f["id"] for f in featured] == [feedback_id]

        unresolved = client.get(
            "/api/v1/feedback", params={"is_resolved": False}, headers=auth_headers(admin)
        ).json()
        assert unresolved["pagination"]["total"] == 0

    def test_blank_message(self, client, user):
        response = client.post(
            "/api/v1/feedback", json={"type": "bug", "message": "   "}, headers=auth_headers(user)
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Type and message are required"

    def test_delete(self, client, user, admin):
        feedback_id = client.post(
            "/api/v1/feedback", json={"type": "bug", "message": "Broken link"},
            headers=auth_headers(user),
        ).json()["feedback"]["id"]

        response = client.delete(f"/api/v1/feedback/{feedback_id}", headers=auth_headers(admin))

        assert response.status_code == 204
        assert client.delete(
            f"/api/v1/feedback/{feedback_id}", headers=auth_headers(admin)
        ).status_code == 404


class TestAnnouncements:
    def _create(self, client, admin, **body):
        payload = {"title": "Spring sale", "message": "20% off knitwear", "type": "sale"}
        payload.update(body)
        return client.post("/api/v1/announcements", json=payload, headers=auth_headers(admin))

    def test_create_normalizes_type(self, client, admin):
        response = self._create(client, admin)

        assert response.status_code == 201
        assert response.json()["announcement"]["type"] == "SALE"

    def test_invalid_type(self, client, admin):
        assert self._create(client, admin, type="PROMO").status_code == 400

    def test_end_before_start(self, client, admin):
        now = datetime.now(timezone.utc)

        response = self._create(
            client, admin,
            start_date=now.isoformat(), end_date=(now - timedelta(days=1)).isoformat(),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "End date must be after start date"

    def test_aware_dates_stored_as_utc(self, client, db, admin):
        start = datetime(2030, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))

        announcement_id = self._create(
            client, admin, start_date=start.isoformat()
        ).json()["announcement"]["id"]

        assert db.get(Announcement, announcement_id).start_date == datetime(2030, 1, 1, 10, 0)

    def test_active_window_and_priority(self, client, db, admin):
        now = utcnow()
        db.add_all([
            Announcement(title="Low", message="m", priority=1),
            Announcement(title="High", message="m", priority=5),
            Announcement(title="Off", message="m", is_active=False),
            Announcement(title="Future", message="m", start_date=now + timedelta(days=2)),
            Announcement(title="Past", message="m", end_date=now - timedelta(days=2)),
        ])
        db.commit()

        active = client.get("/api/v1/announcements/active").json()["announcements"]

        assert [a["title"] for a in active] == ["High", "Low"]

    def test_update_checks_dates_against_stored_values(self, client, admin):
        now = datetime.now(timezone.utc)
        announcement_id = self._create(
            client, admin, start_date=now.isoformat()
        ).json()["announcement"]["id"]

        response = client.put(
            f"/api/v1/announcements/{announcement_id}",
            json={"end_date": (now - timedelta(hours=1)).isoformat()},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400

    def test_update_null_and_blank(self, client, db, admin):
        announcement_id = self._create(
            client, admin, link_url="https://babeledit.example/sale"
        ).json()["announcement"]["id"]

        nulls = client.put(
            f"/api/v1/announcements/{announcement_id}",
            json={"is_active": None, "priority": None, "type": None, "link_url": None},
            headers=auth_headers(admin),
        )
        blank = client.put(
            f"/api/v1/announcements/{announcement_id}",
            json={"message": "  "},
            headers=auth_headers(admin),
        )

        assert nulls.status_code == 200
        assert blank.status_code == 400
        assert blank.json()["detail"] == "message cannot be blank"
        db.expire_all()
        stored = db.get(Announcement, announcement_id)
        assert (stored.is_active, stored.priority, stored.type) == (True, 0, "SALE")
        assert stored.link_url is None
        assert stored.message == "20% off knitwear"

    def test_toggle_and_delete(self, client, admin):
        announcement_id = self._create(client, admin).json()["announcement"]["id"]

        toggled = client.patch(
            f"/api/v1/announcements/{announcement_id}/toggle", headers=auth_headers(admin)
        )
        assert toggled.json()["announcement"]["is_active"] is False
        assert client.get("/api/v1/announcements/active").json()["announcements"] == []

        deleted = client.delete(
            f"/api/v1/announcements/{announcement_id}", headers=auth_headers(admin)
        )
        assert deleted.status_code == 200
        assert client.get("/api/v1/announcements", headers=auth_headers(admin)).json() == {
            "announcements": []
        }


class TestTestimonials:
    @pytest.fixture
    def review(self, db, user, product):
        review = Review(product_id=product.id, user_id=user.id, rating=5, comment="Perfect fit")
        db.add(review)
        db.commit()
        return review

    def test_add_is_idempotent(self, client, db, admin, review):
        first = client.post(
            "/api/v1/testimonials", json={"review_id": review.id}, headers=auth_headers(admin)
        )
        again = client.post(
            "/api/v1/testimonials", json={"review_id": review.id}, headers=auth_headers(admin)
        )

        assert first.status_code == again.status_code == 200
        assert again.json() == {
            "message": "Review added as testimonial", "testimonial_ids": [review.id],
        }
        assert db.query(AuditLog).filter(AuditLog.action == "add_testimonial").count() == 1

    def test_add_requires_existing_review(self, client, admin):
        missing = client.post("/api/v1/testimonials", json={}, headers=auth_headers(admin))
        unknown = client.post(
            "/api/v1/testimonials", json={"review_id": "nope"}, headers=auth_headers(admin)
        )

        assert missing.status_code == 400
        assert missing.json()["detail"] == "Review ID is required"
        assert unknown.status_code == 404

    def test_admin_only(self, client, user, review):
        listed = client.get("/api/v1/testimonials", headers=auth_headers(user))
        added = client.post(
            "/api/v1/testimonials", json={"review_id": review.id}, headers=auth_headers(user)
        )

        assert listed.status_code == added.status_code == 403

    def test_public_list(self, client, admin, review):
        client.post(
            "/api/v1/testimonials", json={"review_id": review.id}, headers=auth_headers(admin)
        )

        data = client.get("/api/v1/testimonials/public").json()["testimonials"]

        assert [t["id"] for t in data] == [review.id]
        assert data[0]["comment"] == "Perfect fit"
        assert data[0]["product"]["name"] == "Silk Slip Dress"
        assert data[0]["user"]["first_name"] == "Ada"
        assert "avatar_url" in data[0]["user"]

    def test_remove(self, client, db, admin, review):
        client.post(
            "/api/v1/testimonials", json={"review_id": review.id}, headers=auth_headers(admin)
        )

        removed = client.delete(f"/api/v1/testimonials/{review.id}", headers=auth_headers(admin))
        again = client.delete(f"/api/v1/testimonials/{review.id}", headers=auth_headers(admin))

        assert removed.status_code == 200
        assert removed.json()["testimonial_ids"] == []
        assert again.status_code == 404
        assert again.json()["detail"] == "Testimonial not found in featured list"
        assert client.get("/api/v1/testimonials/public").json() == {"testimonials": []}
