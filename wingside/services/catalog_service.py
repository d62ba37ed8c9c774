import logging
from typing import Dict, Iterable, List, Optional

from wingside.core.errors import NotFound, ValidationFailed
from wingside.core.supabase import first_row, get_client

logger = logging.getLogger(__name__)

# table -> (default ordering, label)
CATALOG_TABLES = {
    "categories": ("sort_order", "Category"),
    "products": ("name", "Product"),
    "delivery_areas": ("name", "Delivery area"),
}


def price_for(product: Dict, size: Optional[str] = None) -> float:
    """Unit price for a product, using the size price when the size exists"""
    if size:
        for option in product.get("sizes") or []:
            if str(option.get("name", "")).lower() == size.lower():
                return float(option["price"])
        raise ValidationFailed(f"Size '{size}' is not available for {product.get('name')}")
    return float(product["price"])


class CatalogService:
    """
    Menu and delivery-area persistence.
    """

    @staticmethod
    def list_active(table: str, category_id: Optional[str] = None) -> List[Dict]:
        query = get_client().table(table).select("*").eq("is_active", True)
        if category_id and table == "products":
            query = query.eq("category_id", category_id)
        response = query.order(CATALOG_TABLES[table][0]).execute()
        return response.data or []

    @staticmethod
    def get(table: str, item_id: str) -> Dict:
        row = first_row(get_client().table(table).select("*").eq("id", item_id).limit(1).execute())
        if not row:
            raise NotFound(f"{CATALOG_TABLES[table][1]} not found")
        return row

    @staticmethod
    def get_products(product_ids: Iterable[str]) -> Dict[str, Dict]:
        ids = list({str(pid) for pid in product_ids})
        if not ids:
            return {}
        response = get_client().table("products").select("*").in_("id", ids).execute()
        return {str(row["id"]): row for row in (response.data or [])}

    @staticmethod
    def create(table: str, values: Dict) -> Dict:
        response = get_client().table(table).insert(values).execute()
        row = first_row(response)
        logger.info(f"✅ Created {table} row {row.get('id') if row else '?'}")
        return row

    @staticmethod
    def update(table: str, item_id: str, values: Dict) -> Dict:
        if not values:
            raise ValidationFailed("No fields to update")
        row = first_row(get_client().table(table).update(values).eq("id", item_id).execute())
        if not row:
            raise NotFound(f"{CATALOG_TABLES[table][1]} not found")
        return row

    @staticmethod
    def delete(table: str, item_id: str) -> None:
        response = get_client().table(table).delete().eq("id", item_id).execute()
        if not response.data:
            raise NotFound(f"{CATALOG_TABLES[table][1]} not found")
        logger.info(f"🗑️ Deleted {table} row {item_id}")
