from .inventory import InventoryItem, FinishedProduct, RecipeLine
from .sales import Sale, PaymentMethod, CustomerType, SaleImmutableError

__all__ = [
    'InventoryItem', 'FinishedProduct', 'RecipeLine',
    'Sale', 'PaymentMethod', 'CustomerType', 'SaleImmutableError',
]
