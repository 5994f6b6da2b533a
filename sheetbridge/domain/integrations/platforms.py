"""
Catalog of platforms a user can connect.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class IntegrationPlatform:
    id: str
    name: str
    description: str
    permissions: Tuple[str, ...]
    category: str  # ecommerce | spreadsheet | erp | api


PLATFORMS: Tuple[IntegrationPlatform, ...] = (
    IntegrationPlatform(
        id="shopify",
        name="Shopify",
        description="Sync orders, revenue, and inventory",
        permissions=("Orders", "Revenue", "Refunds", "Inventory levels"),
        category="ecommerce",
    ),
    IntegrationPlatform(
        id="woocommerce",
        name="WooCommerce",
        description="Connect your WordPress store",
        permissions=("Orders", "Revenue", "Products", "Customers"),
        category="ecommerce",
    ),
    IntegrationPlatform(
        id="google_sheets",
        name="Google Sheets",
        description="Import data from spreadsheets",
        permissions=("Read spreadsheet data",),
        category="spreadsheet",
    ),
    IntegrationPlatform(
        id="excel",
        name="Excel Online",
        description="Connect Microsoft Excel files",
        permissions=("Read spreadsheet data",),
        category="spreadsheet",
    ),
    IntegrationPlatform(
        id="airtable",
        name="Airtable",
        description="Sync your Airtable bases",
        permissions=("Read base data", "Read tables"),
        category="spreadsheet",
    ),
    IntegrationPlatform(
        id="odoo",
        name="Odoo",
        description="Connect your ERP system",
        permissions=("Sales", "Inventory", "Accounting"),
        category="erp",
    ),
    IntegrationPlatform(
        id="rest_api",
        name="REST API",
        description="Connect any REST endpoint",
        permissions=("Custom data access",),
        category="api",
    ),
    IntegrationPlatform(
        id="webhook",
        name="Custom Webhook",
        description="Stream data to your webhook",
        permissions=("Outbound data streaming",),
        category="api",
    ),
)

_PLATFORMS_BY_ID: Dict[str, IntegrationPlatform] = {platform.id: platform for platform in PLATFORMS}


def get_platform(platform_id: str) -> Optional[IntegrationPlatform]:
    return _PLATFORMS_BY_ID.get(platform_id)
