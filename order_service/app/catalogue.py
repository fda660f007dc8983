"""
Product and category catalogue.

Images live in object storage and the database keeps only their keys
("uploads/..."). Keys become public URLs on the way out; URLs the admin UI
sends back are reduced to keys on the way in. Uploading the files themselves
is the storage service's job.
"""

import json
from urllib.parse import quote, unquote

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import NotFoundError, ValidationError, translate_db_error
from .logging_config import get_logger
from .models import Category, Product, ProductVariant
from .schemas import CategoryRequest, ProductRequest

log = get_logger(__name__)

MAX_IMAGES = 6
UPLOADS_PREFIX = "uploads/"


def storage_key(value):
    """Reduce an image reference (key, bare file name or public URL) to its storage key."""
    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None

    marker = "/" + UPLOADS_PREFIX
    index = text.find(marker)
    if index >= 0:
        text = unquote(text[index + len(marker):])
    elif "://" in text:
        # Somebody else's URL; kept as given.
        return text
    return text if text.startswith(UPLOADS_PREFIX) else UPLOADS_PREFIX + text


def image_url(key, base_url=""):
    """Public URL for a stored key, served through this backend's /uploads/ proxy."""
    if not key:
        return None
    if "://" in key:
        return key
    if not key.startswith(UPLOADS_PREFIX):
        key = UPLOADS_PREFIX + key
    return f"{base_url}/uploads/{quote(key)}"


def _commit(db: Session, instance=None):
    try:
        db.commit()
        if instance is not None:
            db.refresh(instance)
    except SQLAlchemyError as e:
        db.rollback()
        raise translate_db_error(e) from e


# --- Products ---

def product_as_dict(product: Product, base_url="") -> dict:
    data = {column.name: getattr(product, column.name)
            for column in Product.__table__.columns if column.name != "images_json"}
    data["images"] = [image_url(key, base_url) for key in product.images]
    data["variants"] = [
        {column.name: getattr(variant, column.name) for column in ProductVariant.__table__.columns}
        for variant in product.variants
    ]
    return data


def list_products(db: Session, status="Active"):
    return db.query(Product).filter(Product.status == status).order_by(Product.id).all()


def get_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        raise NotFoundError(f"Product not found: {product_id}")
    return product


def _check_product(req: ProductRequest):
    if not (req.title or "").strip():
        raise ValidationError("title is required", ["title"])


def _apply_product(product: Product, req: ProductRequest):
    product.title = req.title.strip()
    product.description = req.description
    product.category = req.category
    product.hsn = req.hsn
    product.status = req.status
    product.units = req.units
    product.video = req.video

    keys = [key for key in (storage_key(value) for value in req.images) if key]
    product.images_json = json.dumps(keys[:MAX_IMAGES])

    # The variant list is replaced as a whole.
    product.variants = [
        ProductVariant(
            weight=variant.weight,
            price=variant.price,
            sale_price=variant.sale_price or 0,
            offer_percent=variant.offer_percent or 0,
            tax_percent=variant.tax_percent or 0,
            tax_amount=variant.tax_amount or 0,
            stock=variant.stock or 0,
        )
        for variant in req.variants
    ]
    if req.stock is not None:
        product.stock = req.stock
    elif req.variants:
        product.stock = sum(variant.stock or 0 for variant in req.variants)


def create_product(db: Session, req: ProductRequest) -> Product:
    _check_product(req)
    product = Product(stock=0)
    _apply_product(product, req)
    db.add(product)
    _commit(db, product)
    log.info("product created", product_id=product.id, title=product.title)
    return product


def update_product(db: Session, product_id: int, req: ProductRequest) -> Product:
    """Overwrites the product. Orders already placed keep their own snapshot."""
    _check_product(req)
    product = get_product(db, product_id)
    _apply_product(product, req)
    _commit(db, product)
    log.info("product updated", product_id=product_id)
    return product


def delete_product(db: Session, product_id: int):
    product = get_product(db, product_id)
    db.delete(product)
    _commit(db)
    log.info("product deleted", product_id=product_id)


# --- Categories ---

def category_as_dict(category: Category) -> dict:
    return {column.name: getattr(category, column.name) for column in Category.__table__.columns}


def list_categories(db: Session):
    return db.query(Category).order_by(Category.created_at.desc(), Category.id.desc()).all()


def get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if category is None:
        raise NotFoundError(f"Category not found: {category_id}")
    return category


def _category_name(req: CategoryRequest) -> str:
    name = (req.category_name or "").strip()
    if not name:
        raise ValidationError("category_name is required", ["category_name"])
    return name


def create_category(db: Session, req: CategoryRequest) -> Category:
    category = Category(
        category_name=_category_name(req),
        date=req.date,
        status=req.status,
        image_url=storage_key(req.image_url),
    )
    db.add(category)
    _commit(db, category)
    return category


def update_category(db: Session, category_id: int, req: CategoryRequest) -> Category:
    """Without a new image reference the stored image is kept."""
    name = _category_name(req)
    category = get_category(db, category_id)
    category.category_name = name
    category.date = req.date
    category.status = req.status
    if req.image_url:
        category.image_url = storage_key(req.image_url)
    _commit(db, category)
    return category


def delete_category(db: Session, category_id: int):
    category = get_category(db, category_id)
    db.delete(category)
    _commit(db)
