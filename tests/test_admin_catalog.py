"""
Тесты администрирования каталога.
"""

from io import BytesIO

import pytest
from PIL import Image

from factories import auth_headers, make_address, make_category, make_collection, make_product
from storefront.db.models import (
    AuditLog,
    CartItem,
    Category,
    Collection,
    Product,
    ProductImage,
    ProductType,
    WishlistItem,
)
from storefront.services import cart_service, order_service


def _png(width=40, height=30):
    buffer = BytesIO()
    Image.new("RGB", (width, height), (200, 30, 60)).save(buffer, format="PNG")
    return buffer.getvalue()


class TestProducts:
    def test_user_is_forbidden(self, client, user):
        response = client.post(
            "/api/v1/admin/products", json={"name": "X", "price_cents": 1}, headers=auth_headers(user)
        )

        assert response.status_code == 403

    def test_create_product(self, client, db, admin):
        category = make_category(db)

        response = client.post(
            "/api/v1/admin/products",
            json={
                "name": "Linen Shirt",
                "price_cents": 3900,
                "stock": 2,
                "sku": " TBE-100 ",
                "sizes": ["M"],
                "category_id": category.id,
            },
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["sku"] == "TBE-100"
        assert data["category"]["slug"] == "dresses"
        assert db.query(AuditLog).filter(AuditLog.action == "create_product").count() == 1

    def test_duplicate_sku(self, client, db, admin):
        make_product(db, sku="TBE-100")

        response = client.post(
            "/api/v1/admin/products",
            json={"name": "Copy", "price_cents": 100, "sku": "TBE-100"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 409

    def test_unknown_collection(self, client, admin):
        response = client.post(
            "/api/v1/admin/products",
            json={"name": "Orphan", "price_cents": 100, "collection_id": "missing"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400

    def test_update_records_previous_values(self, client, db, admin, product):
        response = client.put(
            f"/api/v1/admin/products/{product.id}",
            json={"price_cents": 3999, "is_featured": True},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["price_cents"] == 3999
        entry = db.query(AuditLog).filter(AuditLog.action == "update_product").one()
        assert entry.previous_values == {"price_cents": 4500, "is_featured": False}

    def test_update_ignores_null_for_required_fields(self, client, db, admin, product):
        response = client.put(
            f"/api/v1/admin/products/{product.id}",
            json={"price_cents": None, "stock": None, "name": None, "is_active": None},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        db.expire_all()
        stored = db.get(Product, product.id)
        assert (stored.name, stored.price_cents, stored.stock) == ("Silk Slip Dress", 4500, 3)
        assert stored.is_active is True

    def test_update_clears_nullable_fields(self, client, db, admin):
        product = make_product(db, description="Bias cut", brand="Maison")

        response = client.put(
            f"/api/v1/admin/products/{product.id}",
            json={"description": None, "brand": "  "},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        db.expire_all()
        stored = db.get(Product, product.id)
        assert stored.description is None
        assert stored.brand is None

    def test_update_rejects_blank_name(self, client, admin, product):
        response = client.put(
            f"/api/v1/admin/products/{product.id}",
            json={"name": "   "},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "name cannot be blank"

    def test_soft_delete(self, client, db, admin, product):
        response = client.delete(f"/api/v1/admin/products/{product.id}", headers=auth_headers(admin))

        assert response.status_code == 200
        assert client.get(f"/api/v1/products/{product.id}").status_code == 404
        db.expire_all()
        assert db.get(Product, product.id) is not None

    def test_hard_delete_removes_cart_and_wishlist_rows(self, client, db, user, admin, product):
        cart_service.add_to_cart(db, user, product.id)
        db.add(WishlistItem(user_id=user.id, product_id=product.id))
        db.commit()

        response = client.delete(
            f"/api/v1/admin/products/{product.id}/hard", headers=auth_headers(admin)
        )

        assert response.status_code == 200
        db.expire_all()
        assert db.get(Product, product.id) is None
        assert db.query(CartItem).count() == 0
        assert db.query(WishlistItem).count() == 0
        entry = db.query(AuditLog).filter(AuditLog.action == "hard_delete_product").one()
        assert entry.severity == "critical"

    def test_hard_delete_refused_for_ordered_product(self, client, db, user, admin, product):
        address = make_address(db, user)
        cart_service.add_to_cart(db, user, product.id)
        order_service.create_order_from_cart(db, user, address.id)

        response = client.delete(
            f"/api/v1/admin/products/{product.id}/hard", headers=auth_headers(admin)
        )

        assert response.status_code == 400


class TestProductImages:
    def _upload(self, client, admin, product_id, content, filename="photo.png", **form):
        return client.post(
            f"/api/v1/admin/products/{product_id}/images",
            files={"file": (filename, content, "image/png")},
            data=form,
            headers=auth_headers(admin),
        )

    def test_first_upload_becomes_primary(self, client, db, admin, product):
        response = self._upload(client, admin, product.id, _png(), alt_text="Front")

        assert response.status_code == 201
        data = response.json()
        assert data["is_primary"] is True
        assert (data["width"], data["height"]) == (40, 30)
        assert data["url"].startswith("/static/products/")
        db.expire_all()
        assert db.get(Product, product.id).image_url == data["url"]

    def test_second_primary_replaces_first(self, client, db, admin, product):
        first = self._upload(client, admin, product.id, _png()).json()
        second = self._upload(client, admin, product.id, _png(), is_primary="true").json()

        db.expire_all()
        assert db.get(ProductImage, first["id"]).is_primary is False
        assert second["sort_order"] == 1
        assert db.get(Product, product.id).image_url == second["url"]

    @pytest.mark.parametrize(
        "filename,content",
        [("notes.txt", b"hello"), ("fake.png", b"definitely not an image")],
    )
    def test_rejects_bad_files(self, client, admin, product, filename, content):
        response = self._upload(client, admin, product.id, content, filename=filename)

        assert response.status_code == 400

    def test_unknown_product(self, client, admin):
        assert self._upload(client, admin, "missing", _png()).status_code == 404


class TestCollections:
    def test_create_and_duplicate(self, client, admin):
        created = client.post(
            "/api/v1/admin/collections", json={"name": " Noir "}, headers=auth_headers(admin)
        )
        duplicate = client.post(
            "/api/v1/admin/collections", json={"name": "Noir"}, headers=auth_headers(admin)
        )

        assert created.status_code == 201
        assert created.json()["name"] == "Noir"
        assert duplicate.status_code == 409

    def test_admin_list_includes_inactive_and_stats(self, client, db, admin):
        active = make_collection(db, name="Noir")
        make_collection(db, name="Retired", is_active=False)
        make_product(db, collection_id=active.id)

        listed = client.get("/api/v1/admin/collections", headers=auth_headers(admin)).json()
        stats = client.get("/api/v1/admin/collections/stats", headers=auth_headers(admin)).json()

        assert len(listed["collections"]) == 2
        assert (stats["total"], stats["active"], stats["inactive"]) == (2, 1, 1)
        assert stats["top_collections"] == [{"name": "Noir", "product_count": 1}]

    def test_rename_clash(self, client, db, admin):
        make_collection(db, name="Noir")
        other = make_collection(db, name="Blanc")

        response = client.put(
            f"/api/v1/admin/collections/{other.id}", json={"name": "Noir"}, headers=auth_headers(admin)
        )

        assert response.status_code == 409

    def test_update_null_and_blank(self, client, db, admin):
        collection = make_collection(db, name="Noir", description="All black")

        nulls = client.put(
            f"/api/v1/admin/collections/{collection.id}",
            json={"name": None, "is_active": None, "description": None},
            headers=auth_headers(admin),
        )
        blank = client.put(
            f"/api/v1/admin/collections/{collection.id}",
            json={"name": " "},
            headers=auth_headers(admin),
        )

        assert nulls.status_code == 200
        assert blank.status_code == 400
        db.expire_all()
        stored = db.get(Collection, collection.id)
        assert (stored.name, stored.is_active, stored.description) == ("Noir", True, None)

    def test_delete_blocked_by_active_products(self, client, db, admin):
        collection = make_collection(db, name="Noir")
        product = make_product(db, collection_id=collection.id)

        blocked = client.delete(
            f"/api/v1/admin/collections/{collection.id}", headers=auth_headers(admin)
        )
        assert blocked.status_code == 400

        product.is_active = False
        db.commit()
        deleted = client.delete(
            f"/api/v1/admin/collections/{collection.id}", headers=auth_headers(admin)
        )
        assert deleted.status_code == 200
        assert client.get("/api/v1/collections/Noir").status_code == 404


class TestCategories:
    def test_create_invalidates_cache(self, client, admin):
        assert client.get("/api/v1/categories").json() == []

        created = client.post(
            "/api/v1/admin/categories", json={"name": "Knit Wear"}, headers=auth_headers(admin)
        )

        assert created.status_code == 201
        assert created.json()["slug"] == "knit-wear"
        assert [c["slug"] for c in client.get("/api/v1/categories").json()] == ["knit-wear"]

    def test_duplicate_slug(self, client, db, admin):
        make_category(db, name="Knitwear", slug="knit-wear")

        response = client.post(
            "/api/v1/admin/categories", json={"name": "Knit Wear"}, headers=auth_headers(admin)
        )

        assert response.status_code == 409

    def test_update_category(self, client, db, admin):
        category = make_category(db)
        make_category(db, name="Knitwear", slug="knitwear")
        assert [c["slug"] for c in client.get("/api/v1/categories").json()] == [
            "dresses", "knitwear",
        ]

        clash = client.patch(
            f"/api/v1/admin/categories/{category.id}", json={"slug": "Knitwear"},
            headers=auth_headers(admin),
        )
        updated = client.patch(
            f"/api/v1/admin/categories/{category.id}",
            json={"name": " Evening Dresses ", "slug": "evening", "description": "", "is_active": False},
            headers=auth_headers(admin),
        )

        assert clash.status_code == 409
        assert updated.status_code == 200
        assert updated.json()["name"] == "Evening Dresses"
        assert updated.json()["description"] is None
        assert [c["slug"] for c in client.get("/api/v1/categories").json()] == ["knitwear"]
        entry = db.query(AuditLog).filter(AuditLog.action == "update_category").one()
        assert entry.details["fields"] == ["description", "is_active", "name", "slug"]

    def test_update_rejects_blank_name(self, client, db, admin):
        category = make_category(db)

        response = client.patch(
            f"/api/v1/admin/categories/{category.id}", json={"name": "  "},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "name cannot be blank"

    def test_delete_blocked_by_products(self, client, db, admin):
        category = make_category(db)
        product = make_product(db, category_id=category.id)

        blocked = client.delete(
            f"/api/v1/admin/categories/{category.id}", headers=auth_headers(admin)
        )
        assert blocked.status_code == 409

        product.category_id = None
        db.commit()
        deleted = client.delete(
            f"/api/v1/admin/categories/{category.id}", headers=auth_headers(admin)
        )

        assert deleted.status_code == 200
        assert deleted.json()["message"] == "Category deleted successfully"
        db.expire_all()
        assert db.get(Category, category.id) is None
        entry = db.query(AuditLog).filter(AuditLog.action == "delete_category").one()
        assert entry.severity == "WARNING"

    def test_delete_blocked_by_typed_products(self, client, db, admin):
        category = make_category(db)
        knit = ProductType(name="Knit", category_id=category.id)
        db.add(knit)
        db.commit()
        make_product(db, type_id=knit.id)

        response = client.delete(
            f"/api/v1/admin/categories/{category.id}", headers=auth_headers(admin)
        )

        assert response.status_code == 409

    def test_delete_removes_types(self, client, db, admin):
        category = make_category(db)
        db.add(ProductType(name="Slip", category_id=category.id))
        db.commit()

        client.delete(f"/api/v1/admin/categories/{category.id}", headers=auth_headers(admin))

        db.expire_all()
        assert db.query(ProductType).count() == 0


class TestProductTypes:
    def test_create_and_duplicate(self, client, db, admin):
        category = make_category(db)
        body = {"name": " Slip ", "category_id": category.id, "description": "Bias cut"}

        created = client.post("/api/v1/admin/types", json=body, headers=auth_headers(admin))
        duplicate = client.post(
            "/api/v1/admin/types", json={**body, "name": "Slip"}, headers=auth_headers(admin)
        )

        assert created.status_code == 201
        assert created.json()["name"] == "Slip"
        assert created.json()["category"]["slug"] == "dresses"
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"] == "Type with this name already exists in this category"
        assert db.query(AuditLog).filter(AuditLog.action == "create_type").count() == 1

    def test_same_name_in_other_category(self, client, db, admin):
        dresses = make_category(db)
        skirts = make_category(db, name="Skirts", slug="skirts")
        db.add(ProductType(name="Midi", category_id=dresses.id))
        db.commit()

        response = client.post(
            "/api/v1/admin/types", json={"name": "Midi", "category_id": skirts.id},
            headers=auth_headers(admin),
        )

        assert response.status_code == 201

    def test_unknown_category(self, client, admin):
        response = client.post(
            "/api/v1/admin/types", json={"name": "Slip", "category_id": "nope"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 404

    def test_update(self, client, db, admin):
        category = make_category(db)
        slip = ProductType(name="Slip", category_id=category.id)
        db.add_all([slip, ProductType(name="Gown", category_id=category.id)])
        db.commit()

        clash = client.patch(
            f"/api/v1/admin/types/{slip.id}", json={"name": "Gown"}, headers=auth_headers(admin)
        )
        updated = client.patch(
            f"/api/v1/admin/types/{slip.id}", json={"name": None, "is_active": False},
            headers=auth_headers(admin),
        )

        assert clash.status_code == 409
        assert updated.status_code == 200
        assert (updated.json()["name"], updated.json()["is_active"]) == ("Slip", False)
        assert client.patch(
            "/api/v1/admin/types/nope", json={}, headers=auth_headers(admin)
        ).status_code == 404

    def test_delete_blocked_by_products(self, client, db, admin):
        category = make_category(db)
        slip = ProductType(name="Slip", category_id=category.id)
        db.add(slip)
        db.commit()
        product = make_product(db, type_id=slip.id)

        blocked = client.delete(f"/api/v1/admin/types/{slip.id}", headers=auth_headers(admin))
        product.type_id = None
        db.commit()
        deleted = client.delete(f"/api/v1/admin/types/{slip.id}", headers=auth_headers(admin))

        assert blocked.status_code == 409
        assert deleted.status_code == 200
        assert deleted.json()["message"] == "Type deleted successfully"

    def test_product_with_unknown_type(self, client, admin):
        response = client.post(
            "/api/v1/admin/products",
            json={"name": "Slip", "price_cents": 100, "type_id": "nope"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Type not found"
