"""
Target schemas for each supported data category.

Every category owns its own field enum, so a field from one category can
never be used to map a file of another category.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple, Type, Union


class DataCategory(str, Enum):
    ORDERS = "orders"
    INVENTORY = "inventory"
    EXPENSES = "expenses"
    CUSTOMERS = "customers"


class OrderField(str, Enum):
    ORDER_NUMBER = "order_number"
    CUSTOMER_NAME = "customer_name"
    TOTAL_AMOUNT = "total_amount"
    STATUS = "status"
    CREATED_AT = "created_at"
    CUSTOMER_EMAIL = "customer_email"


class InventoryField(str, Enum):
    SKU = "sku"
    NAME = "name"
    STOCK = "stock"
    PRICE = "price"
    COST = "cost"


class ExpenseField(str, Enum):
    COST_NAME = "costName"
    AMOUNT = "amount"
    CATEGORY = "category"
    DATE = "date"


class CustomerField(str, Enum):
    NAME = "name"
    EMAIL = "email"
    PHONE = "phone"
    CITY = "city"
    TOTAL_SPENT = "total_spent"


CanonicalField = Union[OrderField, InventoryField, ExpenseField, CustomerField]


@dataclass(frozen=True)
class SchemaField:
    key: CanonicalField
    label: str
    required: bool = False


@dataclass(frozen=True)
class TargetSchema:
    """Ordered, immutable list of canonical fields for one data category."""
    category: DataCategory
    field_type: Type[Enum]
    fields: Tuple[SchemaField, ...]

    @property
    def required_fields(self) -> Tuple[SchemaField, ...]:
        return tuple(f for f in self.fields if f.required)

    def keys(self) -> Tuple[CanonicalField, ...]:
        return tuple(f.key for f in self.fields)

    def field_for(self, key: Union[str, Enum]) -> SchemaField:
        """
        Resolve a key (enum member or raw string) to its schema field.

        Raises:
            KeyError: If the key does not belong to this category.
        """
        if isinstance(key, Enum) and not isinstance(key, self.field_type):
            raise KeyError(f"'{key.value}' is not a {self.category.value} field")
        try:
            member = self.field_type(key.value if isinstance(key, Enum) else key)
        except ValueError:
            raise KeyError(f"'{key}' is not a {self.category.value} field") from None
        for field in self.fields:
            if field.key is member:
                return field
        raise KeyError(f"'{key}' is not a {self.category.value} field")


TARGET_SCHEMAS: Dict[DataCategory, TargetSchema] = {
    DataCategory.ORDERS: TargetSchema(
        category=DataCategory.ORDERS,
        field_type=OrderField,
        fields=(
            SchemaField(OrderField.ORDER_NUMBER, "Order Number", required=True),
            SchemaField(OrderField.CUSTOMER_NAME, "Customer Name", required=True),
            SchemaField(OrderField.TOTAL_AMOUNT, "Total Amount", required=True),
            SchemaField(OrderField.STATUS, "Status"),
            SchemaField(OrderField.CREATED_AT, "Date"),
            SchemaField(OrderField.CUSTOMER_EMAIL, "Email"),
        ),
    ),
    DataCategory.INVENTORY: TargetSchema(
        category=DataCategory.INVENTORY,
        field_type=InventoryField,
        fields=(
            SchemaField(InventoryField.SKU, "SKU", required=True),
            SchemaField(InventoryField.NAME, "Product Name", required=True),
            SchemaField(InventoryField.STOCK, "Stock Level", required=True),
            SchemaField(InventoryField.PRICE, "Price"),
            SchemaField(InventoryField.COST, "Cost"),
        ),
    ),
    DataCategory.EXPENSES: TargetSchema(
        category=DataCategory.EXPENSES,
        field_type=ExpenseField,
        fields=(
            SchemaField(ExpenseField.COST_NAME, "Expense Name", required=True),
            SchemaField(ExpenseField.AMOUNT, "Amount", required=True),
            SchemaField(ExpenseField.CATEGORY, "Category"),
            SchemaField(ExpenseField.DATE, "Date"),
        ),
    ),
    DataCategory.CUSTOMERS: TargetSchema(
        category=DataCategory.CUSTOMERS,
        field_type=CustomerField,
        fields=(
            SchemaField(CustomerField.NAME, "Name", required=True),
            SchemaField(CustomerField.EMAIL, "Email"),
            SchemaField(CustomerField.PHONE, "Phone"),
            SchemaField(CustomerField.CITY, "City"),
            SchemaField(CustomerField.TOTAL_SPENT, "Total Spent"),
        ),
    ),
}


def get_target_schema(category: Union[DataCategory, str]) -> TargetSchema:
    """Return the schema for a category, accepting the enum or its string value."""
    return TARGET_SCHEMAS[DataCategory(category)]
