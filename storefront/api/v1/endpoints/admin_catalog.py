"""
API эндпоинты администрирования каталога: товары, изображения,
коллекции, категории и типы товаров.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.api.v1.endpoints import categories as categories_endpoint
from storefront.api.v1.serializers import (
    category_detail,
    category_out,
    collection_out,
    image_out,
    product_out,
    product_type_out,
)
from storefront.core.auth import require_admin
from storefront.core.logging_config import get_logger
from storefront.db.database import get_db
from storefront.db.models import (
    CartItem,
    Category,
    Collection,
    OrderItem,
    Product,
    ProductImage,
    ProductType,
    Severity,
    User,
    WishlistItem,
)
from storefront.schemas.base import required_text
from storefront.schemas.product import (
    CategoryCreate,
    CategoryUpdate,
    CollectionCreate,
    CollectionUpdate,
    ProductCreate,
    ProductTypeCreate,
    ProductTypeUpdate,
    ProductUpdate,
)
from storefront.services import audit_service, catalog_service
from storefront.services.image_service import image_service
from storefront.services.storage_service import StorageProvider, get_storage

logger = get_logger(__name__)

router = APIRouter()


# ==================== ТОВАРЫ ====================


def _check_relations(db: Session, category_id, collection_id, type_id=None) -> None:
    if category_id and db.get(Category, category_id) is None:
        raise HTTPException(400, detail="Category not found")
    if collection_id and db.get(Collection, collection_id) is None:
        raise HTTPException(400, detail="Collection not found")
    if type_id and db.get(ProductType, type_id) is None:
        raise HTTPException(400, detail="Type not found")


def _check_sku(db: Session, sku, product_id=None) -> None:
    if not sku:
        return
    stmt = select(Product.id).where(Product.sku == sku)
    if product_id:
        stmt = stmt.where(Product.id != product_id)
    if db.scalar(stmt) is not None:
        raise HTTPException(409, detail="SKU already exists")


@router.post("/products", response_model=dict, status_code=201)
def create_product(
    payload: ProductCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Создание товара.

    Raises:
        HTTPException: Неизвестная категория/коллекция (400), занятый SKU (409)
    """
    data = payload.model_dump()
    data["name"] = required_text(data["name"], "name")
    data["sku"] = (data.get("sku") or "").strip() or None
    _check_relations(db, data["category_id"], data["collection_id"], data["type_id"])
    _check_sku(db, data["sku"])

    product = Product(**data)
    db.add(product)
    db.commit()
    db.refresh(product)

    audit_service.record(
        db, "create_product", "Product", resource_id=product.id,
        details={"name": product.name, "price_cents": product.price_cents},
        user=current_user, request=request,
    )
    return product_out(product)


@router.put("/products/{product_id}", response_model=dict)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Частичное обновление товара."""
    product = db.get(Product, product_id)
    if product is None:
        raise HTTPException(404, detail="Product not found")

    changes = payload.changes()
    if changes.get("sku"):
        _check_sku(db, changes["sku"], product.id)
    _check_relations(
        db, changes.get("category_id"), changes.get("collection_id"), changes.get("type_id")
    )

    previous = {key: getattr(product, key) for key in changes}
    for key, value in changes.items():
        setattr(product, key, value)
    db.commit()
    db.refresh(product)

    audit_service.record(
        db, "update_product", "Product", resource_id=product.id,
        details={"fields": sorted(changes)}, previous_values=previous,
        user=current_user, request=request,
    )
    return product_out(product)


@router.delete("/products/{product_id}", response_model=dict)
def soft_delete_product(
    product_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Мягкое удаление: товар становится неактивным."""
    product = db.get(Product, product_id)
    if product is None:
        raise HTTPException(404, detail="Product not found")
    product.is_active = False
    db.commit()

    audit_service.record(
        db, "delete_product", "Product", resource_id=product.id,
        details={"name": product.name}, severity=Severity.WARNING,
        user=current_user, request=request,
    )
    return {"message": "Product deactivated"}


@router.delete("/products/{product_id}/hard", response_model=dict)
def hard_delete_product(
    product_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
):
    """
    Полное удаление товара вместе с позициями корзин и избранного.

    Raises:
        HTTPException: Товар есть в заказах (400)
    """
    product = db.get(Product, product_id)
    if product is None:
        raise HTTPException(404, detail="Product not found")
    in_orders = db.scalar(
        select(func.count()).select_from(OrderItem).where(OrderItem.product_id == product.id)
    )
    if in_orders:
        raise HTTPException(
            400, detail="Product is referenced by orders and cannot be deleted; deactivate it instead"
        )

    paths = [image.path for image in product.images]
    name = product.name
    db.query(CartItem).filter(CartItem.product_id == product.id).delete()
    db.query(WishlistItem).filter(WishlistItem.product_id == product.id).delete()
    db.delete(product)
    db.commit()

    for path in paths:
        storage.delete_file(path)

    audit_service.record(
        db, "hard_delete_product", "Product", resource_id=product_id,
        details={"name": name}, severity=Severity.CRITICAL,
        user=current_user, request=request,
    )
    return {"message": "Product permanently deleted"}


@router.post("/products/{product_id}/images", response_model=Dict[str, Any], status_code=201)
async def upload_product_image(
    product_id: str,
    file: UploadFile = File(...),
    alt_text: str = Form(None),
    is_primary: bool = Form(False),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
):
    """
    Загрузка изображения для товара.

    Файл проверяется по расширению, размеру и содержимому, сохраняется
    в хранилище (локально или S3). Главное изображение становится
    image_url товара.
    """
    product = db.get(Product, product_id)
    if product is None:
        raise HTTPException(404, detail="Product not found")

    content = await file.read()
    is_valid, error_message = image_service.validate_file(
        file.filename, len(content), file.content_type
    )
    if not is_valid:
        raise HTTPException(400, detail=error_message)
    try:
        width, height = image_service.read_dimensions(content)
    except ValueError as e:
        raise HTTPException(400, detail=str(e))

    storage_path = image_service.generate_path(product.id, file.filename)
    await file.seek(0)
    if not storage.save_file(storage_path, file.file, file.content_type):
        raise HTTPException(500, detail="Failed to save file to storage")

    url = storage.get_file_url(storage_path)
    first_image = not product.images
    sort_order = len(product.images)
    image = ProductImage(
        product_id=product.id,
        path=storage_path,
        url=url,
        filename=file.filename,
        sort_order=sort_order,
        is_primary=is_primary or first_image,
        file_size=len(content),
        mime_type=file.content_type,
        width=width,
        height=height,
        alt_text=alt_text,
    )
    if image.is_primary:
        for other in product.images:
            other.is_primary = False
        product.image_url = url
    product.images.append(image)
    db.commit()
    db.refresh(image)

    logger.info("Image %s uploaded for product %s by %s", storage_path, product.id, current_user.email)
    return {**image_out(image), "product_id": product.id, "message": "Image uploaded successfully"}


# ==================== КОЛЛЕКЦИИ ====================


@router.get("/collections", response_model=dict)
def admin_list_collections(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Все коллекции, включая неактивные."""
    rows = db.scalars(select(Collection).order_by(Collection.name)).all()
    counts = catalog_service.active_product_counts(db, [c.id for c in rows])
    return {"collections": [collection_out(c, counts.get(c.id, 0)) for c in rows]}


@router.get("/collections/stats", response_model=dict)
def collection_stats(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Статистика коллекций."""
    total = db.scalar(select(func.count()).select_from(Collection)) or 0
    active = db.scalar(
        select(func.count()).select_from(Collection).where(Collection.is_active.is_(True))
    ) or 0
    top = db.execute(
        select(Collection.name, func.count(Product.id).label("products"))
        .join(Product, Product.collection_id == Collection.id)
        .where(Product.is_active.is_(True))
        .group_by(Collection.name)
        .order_by(func.count(Product.id).desc())
        .limit(5)
    ).all()
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "top_collections": [{"name": row.name, "product_count": row.products} for row in top],
    }


@router.post("/collections", response_model=dict, status_code=201)
def create_collection(
    payload: CollectionCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Создание коллекции, название уникально."""
    name = required_text(payload.name, "name")
    if db.scalar(select(Collection.id).where(Collection.name == name)):
        raise HTTPException(409, detail="Collection with this name already exists")
    collection = Collection(**{**payload.model_dump(), "name": name})
    db.add(collection)
    db.commit()
    db.refresh(collection)

    audit_service.record(
        db, "create_collection", "Collection", resource_id=collection.id,
        details={"name": collection.name}, user=current_user, request=request,
    )
    return collection_out(collection, 0)


@router.put("/collections/{collection_id}", response_model=dict)
def update_collection(
    collection_id: str,
    payload: CollectionUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    collection = db.get(Collection, collection_id)
    if collection is None:
        raise HTTPException(404, detail="Collection not found")

    changes = payload.changes()
    if "name" in changes:
        clash = db.scalar(
            select(Collection.id).where(
                Collection.name == changes["name"], Collection.id != collection.id
            )
        )
        if clash:
            raise HTTPException(409, detail="Collection with this name already exists")

    previous = {key: getattr(collection, key) for key in changes}
    for key, value in changes.items():
        setattr(collection, key, value)
    db.commit()
    db.refresh(collection)

    audit_service.record(
        db, "update_collection", "Collection", resource_id=collection.id,
        details={"fields": sorted(changes)}, previous_values=previous,
        user=current_user, request=request,
    )
    return collection_out(collection)


@router.delete("/collections/{collection_id}", response_model=dict)
def delete_collection(
    collection_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Мягкое удаление коллекции.

    Raises:
        HTTPException: В коллекции есть активные товары (400)
    """
    collection = db.get(Collection, collection_id)
    if collection is None:
        raise HTTPException(404, detail="Collection not found")
    count = catalog_service.active_product_counts(db, [collection.id]).get(collection.id, 0)
    if count:
        raise HTTPException(
            400,
            detail=f"Cannot delete collection with {count} active products. "
            "Move or deactivate them first.",
        )
    collection.is_active = False
    db.commit()

    audit_service.record(
        db, "delete_collection", "Collection", resource_id=collection.id,
        details={"name": collection.name}, severity=Severity.WARNING,
        user=current_user, request=request,
    )
    return {"message": "Collection deleted"}


# ==================== КАТЕГОРИИ ====================


def _category_slug(value: str) -> str:
    slug = catalog_service.slugify(value)
    if not slug:
        raise HTTPException(400, detail="Invalid category slug")
    return slug


def _check_slug(db: Session, slug: str, category_id=None) -> None:
    stmt = select(Category.id).where(Category.slug == slug)
    if category_id:
        stmt = stmt.where(Category.id != category_id)
    if db.scalar(stmt) is not None:
        raise HTTPException(409, detail="Category with this slug already exists")


@router.post("/categories", response_model=dict, status_code=201)
def create_category(
    payload: CategoryCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Создание категории, slug генерируется из названия, если не задан."""
    name = required_text(payload.name, "name")
    slug = _category_slug(payload.slug or name)
    _check_slug(db, slug)
    category = Category(name=name, slug=slug, description=payload.description)
    db.add(category)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail="Category with this slug already exists")
    db.refresh(category)
    categories_endpoint.invalidate_cache()

    audit_service.record(
        db, "create_category", "Category", resource_id=category.id,
        details={"name": category.name, "slug": category.slug},
        user=current_user, request=request,
    )
    return category_out(category)


@router.patch("/categories/{category_id}", response_model=dict)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Частичное обновление категории; slug проверяется на уникальность."""
    category = db.get(Category, category_id)
    if category is None:
        raise HTTPException(404, detail="Category not found")

    changes = payload.changes()
    if "slug" in changes:
        changes["slug"] = _category_slug(changes["slug"])
        _check_slug(db, changes["slug"], category.id)

    for key, value in changes.items():
        setattr(category, key, value)
    db.commit()
    db.refresh(category)
    categories_endpoint.invalidate_cache()

    audit_service.record(
        db, "update_category", "Category", resource_id=category.id,
        details={"fields": sorted(changes)}, user=current_user, request=request,
    )
    return category_detail(category)


@router.delete("/categories/{category_id}", response_model=dict)
def delete_category(
    category_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Удаление категории вместе с ее типами.

    Raises:
        HTTPException: К категории или ее типам привязаны товары (409)
    """
    category = db.get(Category, category_id)
    if category is None:
        raise HTTPException(404, detail="Category not found")
    type_ids = [t.id for t in category.types]
    linked = db.scalar(
        select(func.count(Product.id)).where(
            or_(Product.category_id == category.id, Product.type_id.in_(type_ids))
        )
    )
    if linked:
        raise HTTPException(
            409,
            detail="Cannot delete category with existing products. "
            "Please reassign or delete products first.",
        )
    name = category.name
    db.delete(category)
    db.commit()
    categories_endpoint.invalidate_cache()

    audit_service.record(
        db, "delete_category", "Category", resource_id=category_id,
        details={"name": name}, severity=Severity.WARNING,
        user=current_user, request=request,
    )
    return {"message": "Category deleted successfully"}


# ==================== ТИПЫ ТОВАРОВ ====================


def _check_type_name(db: Session, category_id: str, name: str, type_id=None) -> None:
    stmt = select(ProductType.id).where(
        ProductType.category_id == category_id, ProductType.name == name
    )
    if type_id:
        stmt = stmt.where(ProductType.id != type_id)
    if db.scalar(stmt) is not None:
        raise HTTPException(409, detail="Type with this name already exists in this category")


@router.post("/types", response_model=dict, status_code=201)
def create_type(
    payload: ProductTypeCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Создание типа; название уникально в пределах категории."""
    category = db.get(Category, payload.category_id)
    if category is None:
        raise HTTPException(404, detail="Category not found")
    name = required_text(payload.name, "name")
    _check_type_name(db, category.id, name)

    product_type = ProductType(name=name, category_id=category.id, description=payload.description)
    db.add(product_type)
    db.commit()
    db.refresh(product_type)

    audit_service.record(
        db, "create_type", "Type", resource_id=product_type.id,
        details={"name": name, "category_id": category.id, "category_name": category.name},
        user=current_user, request=request,
    )
    return product_type_out(product_type, include_category=True)


@router.patch("/types/{type_id}", response_model=dict)
def update_type(
    type_id: str,
    payload: ProductTypeUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product_type = db.get(ProductType, type_id)
    if product_type is None:
        raise HTTPException(404, detail="Type not found")

    changes = payload.changes()
    if "name" in changes:
        _check_type_name(db, product_type.category_id, changes["name"], product_type.id)
    for key, value in changes.items():
        setattr(product_type, key, value)
    db.commit()
    db.refresh(product_type)

    audit_service.record(
        db, "update_type", "Type", resource_id=product_type.id,
        details={"fields": sorted(changes), "name": product_type.name},
        user=current_user, request=request,
    )
    return product_type_out(product_type, include_category=True)


@router.delete("/types/{type_id}", response_model=dict)
def delete_type(
    type_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Удаление типа.

    Raises:
        HTTPException: К типу привязаны товары (409)
    """
    product_type = db.get(ProductType, type_id)
    if product_type is None:
        raise HTTPException(404, detail="Type not found")
    if db.scalar(select(func.count(Product.id)).where(Product.type_id == type_id)):
        raise HTTPException(
            409,
            detail="Cannot delete type with existing products. "
            "Please reassign or delete products first.",
        )
    name = product_type.name
    db.delete(product_type)
    db.commit()

    audit_service.record(
        db, "delete_type", "Type", resource_id=type_id,
        details={"name": name}, severity=Severity.WARNING,
        user=current_user, request=request,
    )
    return {"message": "Type deleted successfully"}
