"""Product ORM model."""
import uuid
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import Boolean, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pricing_import.db.base import Base, JSONType, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from pricing_import.db.models.attribute import AttributeGroup
    from pricing_import.db.models.price import GenericProductPrice


class Product(Base, UUIDMixin, TimestampMixin):
    """Catalog product owned by one tenant.

    Attributes:
        tenant_id: Opaque tenant identifier
        slug: Kebab-case slug, unique per tenant
        pricing_type: Pricing mode; imports always set "matrix"
        pricing_structure: Matrix layout document (``matrix_layout_v1``)
        technical_specs: Print-production specs set on creation
        is_published: Imported products are created unpublished
    """

    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="unique_tenant_product_slug"),
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    icon_text: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    preset_key: Mapped[str] = mapped_column(String(100), nullable=False, default="custom")
    pricing_type: Mapped[str] = mapped_column(String(50), nullable=False, default="matrix")
    pricing_structure: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    technical_specs: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    attribute_groups: Mapped[List["AttributeGroup"]] = relationship(
        "AttributeGroup",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="AttributeGroup.sort_order",
    )
    prices: Mapped[List["GenericProductPrice"]] = relationship(
        "GenericProductPrice",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, tenant_id={self.tenant_id}, slug='{self.slug}')>"
