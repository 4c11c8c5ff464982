"""Idempotent reconciliation of mapped price rows into the catalog database.

One run ensures the product, its attribute groups and values, rewrites the
pricing structure and replaces the product's price rows. Everything happens
in a single transaction: it is committed once at the end, or rolled back.
"""
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pricing_import.db.models import AttributeGroup, AttributeValue, GenericProductPrice, Product
from pricing_import.errors.exceptions import ReconciliationError
from pricing_import.models.blueprint import Blueprint, ProductConfig
from pricing_import.models.pricing_structure import (
    LayoutRow,
    PricingStructure,
    SelectorColumn,
    VerticalAxisSection,
)
from pricing_import.models.rows import MappedRow
from pricing_import.services.catalog.layout import (
    AxisSpec,
    ValueSpec,
    build_axis_plan,
    vertical_axis_key,
)

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 500
EMPTY_VARIANT_KEY = "none"


class ReconcileStage(str, Enum):
    """Stages of one reconciliation run, in execution order."""

    ENSURE_PRODUCT = "ensure_product"
    LOAD_EXISTING_GROUPS = "load_existing_groups"
    ENSURE_GROUPS = "ensure_groups"
    ENSURE_VALUES = "ensure_values"
    BUILD_PRICING_STRUCTURE = "build_pricing_structure"
    REPLACE_PRICE_ROWS = "replace_price_rows"
    DONE = "done"


@dataclass
class CatalogIndex:
    """Groups and values of one product, owned by a single reconciliation run."""

    tenant_id: uuid.UUID
    product_id: uuid.UUID
    groups: List[AttributeGroup] = field(default_factory=list)
    values_by_group: Dict[uuid.UUID, List[AttributeValue]] = field(default_factory=dict)

    def find_group(self, kind: str, name: str) -> Optional[AttributeGroup]:
        folded = name.strip().casefold()
        for group in self.groups:
            if group.kind == kind and group.name.strip().casefold() == folded:
                return group
        return None

    def values_of(self, group: AttributeGroup) -> List[AttributeValue]:
        return self.values_by_group.setdefault(group.id, [])

    def find_value(self, group: AttributeGroup, name: str) -> Optional[AttributeValue]:
        folded = name.strip().casefold()
        for value in self.values_of(group):
            if value.name.strip().casefold() == folded:
                return value
        return None

    def add_group(self, group: AttributeGroup) -> None:
        self.groups.append(group)
        self.values_by_group.setdefault(group.id, [])

    def add_value(self, group: AttributeGroup, value: AttributeValue) -> None:
        self.values_of(group).append(value)


@dataclass
class ResolvedAxis:
    """An axis with its ensured group and values, in plan order."""

    spec: AxisSpec
    group: AttributeGroup
    values: List[AttributeValue]

    def value_for(self, label: str) -> AttributeValue:
        folded = label.strip().casefold()
        for value in self.values:
            if value.name.strip().casefold() == folded:
                return value
        raise KeyError(f"no value '{label}' on axis '{self.spec.key}'")


@dataclass
class ReconcileResult:
    product_id: uuid.UUID
    product_created: bool
    rows_inserted: int
    quantities: List[int]
    pricing_structure: Dict[str, Any]


def build_variant_key(value_ids: Iterable[Any]) -> str:
    """Canonical variant key: de-duplicated, sorted, ``|``-joined value ids."""
    ids = sorted({str(value_id) for value_id in value_ids})
    return "|".join(ids) or EMPTY_VARIANT_KEY


def _decimal_or_none(value: Optional[float]) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


def _json_number(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


class CatalogReconciler:
    """Applies an import to the catalog through one async session.

    Usage:
        async with session_maker() as session:
            result = await CatalogReconciler(session).reconcile(blueprint, rows)
    """

    def __init__(self, session: AsyncSession, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.session = session
        self.batch_size = batch_size

    async def ensure_product(
        self,
        tenant_id: uuid.UUID,
        config: ProductConfig,
    ) -> Tuple[Product, bool]:
        """Get the product by (tenant, slug) or create it unpublished.

        Existing products are returned untouched.

        Returns:
            (product, created)
        """
        result = await self.session.execute(
            select(Product)
            .where(Product.tenant_id == tenant_id)
            .where(Product.slug == config.slug)
        )
        product = result.scalar_one_or_none()
        if product is not None:
            logger.debug("product_found", product_id=str(product.id), slug=config.slug)
            return product, False

        product = Product(
            tenant_id=tenant_id,
            name=config.name,
            slug=config.slug,
            description=config.description,
            category=config.category,
            icon_text=config.icon_text,
            image_url=config.image_url,
            preset_key=config.preset_key,
            pricing_type="matrix",
            is_published=False,
            technical_specs=config.technical_specs.model_dump(),
        )
        self.session.add(product)
        await self.session.flush()

        logger.info("product_created", product_id=str(product.id), slug=config.slug)
        return product, True

    async def load_existing_groups(self, tenant_id: uuid.UUID, product_id: uuid.UUID) -> CatalogIndex:
        """Load the product's groups and values into a fresh index."""
        groups_result = await self.session.execute(
            select(AttributeGroup)
            .where(AttributeGroup.tenant_id == tenant_id)
            .where(AttributeGroup.product_id == product_id)
            .order_by(AttributeGroup.sort_order)
        )
        values_result = await self.session.execute(
            select(AttributeValue)
            .where(AttributeValue.tenant_id == tenant_id)
            .where(AttributeValue.product_id == product_id)
            .order_by(AttributeValue.sort_order)
        )

        index = CatalogIndex(tenant_id=tenant_id, product_id=product_id)
        for group in groups_result.scalars():
            index.add_group(group)
        for value in values_result.scalars():
            index.values_by_group.setdefault(value.group_id, []).append(value)
        return index

    async def ensure_group(
        self,
        index: CatalogIndex,
        kind: str,
        name: str,
        sort_order: int,
        ui_mode: str = "buttons",
    ) -> Tuple[AttributeGroup, bool]:
        """Find a group by kind and case-insensitive name, or create it.

        Name and order of an existing group are never rewritten.

        Returns:
            (group, created)
        """
        group = index.find_group(kind, name)
        if group is not None:
            return group, False

        group = AttributeGroup(
            tenant_id=index.tenant_id,
            product_id=index.product_id,
            name=name.strip(),
            kind=kind,
            ui_mode=ui_mode,
            source="product",
            sort_order=sort_order,
            enabled=True,
        )
        self.session.add(group)
        await self.session.flush()
        index.add_group(group)

        logger.info("attribute_group_created", group_id=str(group.id), kind=kind, name=group.name)
        return group, True

    async def ensure_value(
        self,
        index: CatalogIndex,
        group: AttributeGroup,
        spec: ValueSpec,
    ) -> Tuple[AttributeValue, bool]:
        """Find a value by case-insensitive name, patching changed fields, or create it.

        Only ``width_mm``, ``height_mm`` and ``meta["image"]`` are patched, and
        only when the new value is set and differs.

        Returns:
            (value, created)
        """
        width = _decimal_or_none(spec.width_mm)
        height = _decimal_or_none(spec.height_mm)
        value = index.find_value(group, spec.name)

        if value is None:
            value = AttributeValue(
                tenant_id=index.tenant_id,
                product_id=index.product_id,
                group_id=group.id,
                name=spec.name.strip(),
                sort_order=len(index.values_of(group)),
                enabled=True,
                width_mm=width,
                height_mm=height,
                meta={"image": spec.image_url} if spec.image_url else None,
            )
            self.session.add(value)
            await self.session.flush()
            index.add_value(group, value)
            logger.info("attribute_value_created", value_id=str(value.id), name=value.name)
            return value, True

        patched = []
        if width is not None and value.width_mm != width:
            value.width_mm = width
            patched.append("width_mm")
        if height is not None and value.height_mm != height:
            value.height_mm = height
            patched.append("height_mm")
        current_meta = value.meta if isinstance(value.meta, dict) else {}
        if spec.image_url and current_meta.get("image") != spec.image_url:
            value.meta = {**current_meta, "image": spec.image_url}
            patched.append("meta")

        if patched:
            await self.session.flush()
            logger.info("attribute_value_patched", value_id=str(value.id), fields=patched)
        return value, False

    @staticmethod
    def build_pricing_structure(
        axes: Sequence[ResolvedAxis],
        vertical_key: str,
        quantities: Sequence[int],
    ) -> PricingStructure:
        """Assemble the matrix layout from group and value ids only."""
        vertical = next(axis for axis in axes if axis.spec.key == vertical_key)
        layout_rows = [
            LayoutRow(
                id=f"row-{axis.spec.key}",
                columns=[
                    SelectorColumn(
                        id=f"{axis.spec.key}-section",
                        section_type=axis.spec.section_type,
                        group_id=str(axis.group.id),
                        value_ids=[str(value.id) for value in axis.values],
                        ui_mode=axis.spec.ui_mode,
                        selection_mode=axis.spec.selection_mode,
                        title=axis.spec.title,
                    )
                ],
            )
            for axis in axes
            if axis.spec.key != vertical_key
        ]
        return PricingStructure(
            vertical_axis=VerticalAxisSection(
                section_type=vertical.spec.section_type,
                group_id=str(vertical.group.id),
                value_ids=[str(value.id) for value in vertical.values],
                title=vertical.spec.title,
            ),
            layout_rows=layout_rows,
            quantities=sorted(set(quantities)),
        )

    @staticmethod
    def build_price_rows(
        blueprint: Blueprint,
        product_id: uuid.UUID,
        axes: Sequence[ResolvedAxis],
        rows: Sequence[MappedRow],
    ) -> List[Dict[str, Any]]:
        """Turn mapped rows into price-row payloads; duplicate keys keep the last row."""
        vertical_key = vertical_axis_key(blueprint)
        by_key = {axis.spec.key: axis for axis in axes}
        vertical_group_id = str(by_key[vertical_key].group.id)
        source = f"blueprint_{blueprint.pricing_import.type}"

        payloads: Dict[Tuple[str, str, int], Dict[str, Any]] = {}
        for row in rows:
            ids = {key: str(by_key[key].value_for(label).id) for key, label in row.selections.items()}
            vertical_id = ids[vertical_key]
            variant_ids = sorted({value_id for key, value_id in ids.items() if key != vertical_key})
            variant_name = build_variant_key(variant_ids)

            payloads[(variant_name, vertical_id, row.quantity)] = {
                "tenant_id": blueprint.tenant_id,
                "product_id": product_id,
                "variant_name": variant_name,
                "variant_value": vertical_id,
                "quantity": row.quantity,
                "price": row.final_amount,
                "extra_data": {
                    "verticalAxisGroupId": vertical_group_id,
                    "verticalAxisValueId": vertical_id,
                    "formatId": ids["format"],
                    "materialId": ids["material"],
                    "variantValueIds": variant_ids,
                    "selectionMap": dict(ids),
                    "source": source,
                    "sourceUrl": row.source_url,
                    "sourceMaterialLabel": row.source_material_label,
                    "rowType": row.row_type,
                    "sourceIndex": row.source_index,
                    "sourceText": row.source_text,
                    "eur": _json_number(row.unit_price),
                    "dkkBase": _json_number(row.base_amount),
                    "tierMultiplier": _json_number(row.tier_multiplier),
                    "inferredFromQuantity": row.inferred_from_quantity,
                },
            }
        return list(payloads.values())

    async def replace_price_rows(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        rows: Sequence[Dict[str, Any]],
        format_value_id: Optional[str] = None,
    ) -> int:
        """Delete the product's price rows, then insert ``rows`` in batches.

        Args:
            tenant_id: Tenant of the product
            product_id: Product whose rows are replaced
            rows: Price-row payloads
            format_value_id: Only delete rows whose ``extra_data.formatId`` matches

        Returns:
            Number of inserted rows
        """
        stmt = (
            delete(GenericProductPrice)
            .where(GenericProductPrice.tenant_id == tenant_id)
            .where(GenericProductPrice.product_id == product_id)
        )
        if format_value_id is not None:
            stmt = stmt.where(GenericProductPrice.extra_data["formatId"].as_string() == format_value_id)
        deleted = await self.session.execute(stmt.execution_options(synchronize_session=False))

        for start in range(0, len(rows), self.batch_size):
            await self.session.execute(insert(GenericProductPrice), list(rows[start:start + self.batch_size]))

        logger.info(
            "price_rows_replaced",
            product_id=str(product_id),
            deleted=deleted.rowcount,
            inserted=len(rows),
            batches=-(-len(rows) // self.batch_size),
        )
        return len(rows)

    async def reconcile(self, blueprint: Blueprint, rows: Sequence[MappedRow]) -> ReconcileResult:
        """Run all stages and commit; roll back on any failure.

        Raises:
            ReconciliationError: Naming the stage that failed
        """
        log = logger.bind(tenant_id=str(blueprint.tenant_id), slug=blueprint.product.slug)
        stage = ReconcileStage.ENSURE_PRODUCT

        try:
            product, created = await self.ensure_product(blueprint.tenant_id, blueprint.product)
            product_id = product.id

            stage = ReconcileStage.LOAD_EXISTING_GROUPS
            index = await self.load_existing_groups(blueprint.tenant_id, product_id)

            stage = ReconcileStage.ENSURE_GROUPS
            groups = []
            for spec in build_axis_plan(blueprint, rows):
                group, _ = await self.ensure_group(
                    index, spec.kind, spec.group_name, spec.sort_order, spec.ui_mode
                )
                groups.append((spec, group))

            stage = ReconcileStage.ENSURE_VALUES
            axes = []
            for spec, group in groups:
                values = []
                for value_spec in spec.values:
                    value, _ = await self.ensure_value(index, group, value_spec)
                    values.append(value)
                axes.append(ResolvedAxis(spec=spec, group=group, values=values))

            stage = ReconcileStage.BUILD_PRICING_STRUCTURE
            quantities = sorted({row.quantity for row in rows})
            document = self.build_pricing_structure(
                axes, vertical_axis_key(blueprint), quantities
            ).to_document()
            product.pricing_type = "matrix"
            product.pricing_structure = document
            await self.session.flush()

            stage = ReconcileStage.REPLACE_PRICE_ROWS
            payloads = self.build_price_rows(blueprint, product_id, axes, rows)
            format_value_id = None
            if blueprint.pricing_import.replace_scope == "format":
                format_axis = next(axis for axis in axes if axis.spec.key == "format")
                format_value_id = str(format_axis.values[0].id)
            inserted = await self.replace_price_rows(
                blueprint.tenant_id, product_id, payloads, format_value_id=format_value_id
            )

            await self.session.commit()
        except (SQLAlchemyError, OSError) as e:
            await self.session.rollback()
            log.error(
                "reconciliation_failed",
                stage=stage.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ReconciliationError(
                f"reconciliation failed during {stage.value}: {e}",
                stage=stage.value,
            ) from e
        except Exception:
            await self.session.rollback()
            raise

        stage = ReconcileStage.DONE
        log.info(
            "reconciliation_completed",
            stage=stage.value,
            product_id=str(product_id),
            product_created=created,
            rows_inserted=inserted,
        )
        return ReconcileResult(
            product_id=product_id,
            product_created=created,
            rows_inserted=inserted,
            quantities=quantities,
            pricing_structure=document,
        )
