"""Attribute group and value ORM models forming a product's selector axes."""
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pricing_import.db.base import Base, JSONType, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from pricing_import.db.models.product import Product


class AttributeGroup(Base, UUIDMixin, TimestampMixin):
    """One selector axis of a product (format, material, finish or other).

    Attributes:
        kind: Axis kind, one of format, material, finish, other
        sort_order: Display order; never rewritten by imports
    """

    __tablename__ = "product_attribute_groups"

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    ui_mode: Mapped[str] = mapped_column(String(50), nullable=False, default="buttons")
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="product")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    product: Mapped["Product"] = relationship("Product", back_populates="attribute_groups")
    values: Mapped[List["AttributeValue"]] = relationship(
        "AttributeValue",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="AttributeValue.sort_order",
    )

    def __repr__(self) -> str:
        return f"<AttributeGroup(id={self.id}, kind='{self.kind}', name='{self.name}')>"


class AttributeValue(Base, UUIDMixin, TimestampMixin):
    """One selectable value of an attribute group.

    Attributes:
        width_mm: Format width, only set for format values
        height_mm: Format height, only set for format values
        meta: Free-form metadata; ``meta["image"]`` holds the value image URL
    """

    __tablename__ = "product_attribute_values"

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    group_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("product_attribute_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    width_mm: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    height_mm: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    group: Mapped["AttributeGroup"] = relationship("AttributeGroup", back_populates="values")

    def __repr__(self) -> str:
        return f"<AttributeValue(id={self.id}, name='{self.name}')>"
