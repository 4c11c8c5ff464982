"""Generic product price ORM model."""
import uuid
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pricing_import.db.base import Base, JSONType, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from pricing_import.db.models.product import Product


class GenericProductPrice(Base, UUIDMixin, TimestampMixin):
    """One price point of a product variant.

    Attributes:
        variant_name: Sorted, ``|``-joined ids of the non-vertical selected values
        variant_value: Id of the vertical-axis value
        quantity: Ordered quantity
        price: Integer price in the target currency
        extra_data: Selection ids and pricing provenance
    """

    __tablename__ = "generic_product_prices"
    __table_args__ = (
        UniqueConstraint(
            "product_id",
            "variant_name",
            "variant_value",
            "quantity",
            name="unique_product_variant_quantity",
        ),
        CheckConstraint("quantity > 0", name="check_positive_quantity"),
        CheckConstraint("price >= 0", name="check_non_negative_price"),
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    variant_name: Mapped[str] = mapped_column(String(1024), nullable=False)
    variant_value: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    extra_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    product: Mapped["Product"] = relationship("Product", back_populates="prices")

    def __repr__(self) -> str:
        return (
            f"<GenericProductPrice(product_id={self.product_id}, variant='{self.variant_name}', "
            f"quantity={self.quantity}, price={self.price})>"
        )
