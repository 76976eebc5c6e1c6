"""
Catalog variation resolver
--------------------------
Exact-match lookup of (diameter, soil_type, access) on a catalog item.
A miss is a normal "incomplete" state and is returned as None, never raised.
No interpolation across diameters: 33cm on a 30/35 catalog is simply a miss.
"""
from __future__ import annotations

import uuid
from typing import Dict, Iterable, Optional, Union

from sqlalchemy import select

from common.models import CatalogItem, PriceVariation
from constants.types import AccessType, SoilType
from db.models import Session, CatalogItem as CatalogRow, PriceVariation as VariationRow


def resolve_variation(
    item: Optional[CatalogItem],
    diameter: Optional[int],
    soil_type: Optional[SoilType],
    access: Optional[AccessType],
) -> Optional[PriceVariation]:
    if item is None or diameter is None or soil_type is None or access is None:
        return None
    for pv in item.price_variations:
        if pv.diameter == diameter and pv.soil_type == soil_type and pv.access == access:
            return pv
    return None


def catalog_item_from_row(row: CatalogRow) -> CatalogItem:
    return CatalogItem(
        id=str(row.id),
        name=row.name,
        category=row.category,
        price_variations=[
            PriceVariation(
                diameter=pv.diameter,
                soil_type=SoilType(pv.soil_type),
                access=AccessType(pv.access),
                price=float(pv.price),
                execution_time=(float(pv.execution_time) if pv.execution_time is not None else None),
            )
            for pv in row.price_variations
        ],
    )


def _as_uuid(ref: Union[str, uuid.UUID]) -> Optional[uuid.UUID]:
    if isinstance(ref, uuid.UUID):
        return ref
    try:
        return uuid.UUID(str(ref))
    except (ValueError, TypeError, AttributeError):
        return None


async def get_catalog_item(catalog_id: str) -> Optional[CatalogItem]:
    u = _as_uuid(catalog_id)
    if u is None:
        return None
    async with Session() as db:
        row = await db.get(CatalogRow, u)
        return catalog_item_from_row(row) if row else None


async def load_catalog(catalog_ids: Iterable[Optional[str]]) -> Dict[str, CatalogItem]:
    """Fetch every referenced catalog item in one round trip, keyed by id string."""
    ids = {u for u in (_as_uuid(c) for c in catalog_ids if c) if u is not None}
    if not ids:
        return {}
    async with Session() as db:
        rows = (await db.execute(select(CatalogRow).where(CatalogRow.id.in_(ids)))).scalars().all()
        return {str(r.id): catalog_item_from_row(r) for r in rows}


async def create_catalog_item(
    *,
    name: str,
    category: Optional[str] = None,
    description: Optional[str] = None,
    variations: Iterable[PriceVariation] = (),
) -> CatalogItem:
    # Catalog upkeep is external; this exists for seeding and tests.
    async with Session() as db:
        row = CatalogRow(name=name.strip(), category=category, description=description)
        row.price_variations = [
            VariationRow(
                diameter=v.diameter,
                soil_type=v.soil_type,
                access=v.access,
                price=v.price,
                execution_time=v.execution_time,
            )
            for v in variations
        ]
        db.add(row)
        await db.commit()
        await db.refresh(row, attribute_names=["price_variations"])
        return catalog_item_from_row(row)


__all__ = [
    "resolve_variation",
    "catalog_item_from_row",
    "get_catalog_item",
    "load_catalog",
    "create_catalog_item",
]
