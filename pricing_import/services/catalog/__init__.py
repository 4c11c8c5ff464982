"""Catalog reconciliation: products, attribute axes, pricing structure, price rows."""
from pricing_import.services.catalog.layout import AxisSpec, ValueSpec, build_axis_plan
from pricing_import.services.catalog.reconciler import (
    CatalogIndex,
    CatalogReconciler,
    ReconcileResult,
    ReconcileStage,
    build_variant_key,
)

__all__ = [
    "AxisSpec",
    "ValueSpec",
    "build_axis_plan",
    "CatalogIndex",
    "CatalogReconciler",
    "ReconcileResult",
    "ReconcileStage",
    "build_variant_key",
]
