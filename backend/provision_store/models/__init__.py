from .inventory import Product
from .sales import Sale, SaleItem, LedgerImmutableError
from .chat import ChatMessage

__all__ = [
    'Product',
    'Sale', 'SaleItem', 'LedgerImmutableError',
    'ChatMessage',
]
