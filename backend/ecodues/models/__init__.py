from .parties import User, Business, Retailer, Company, RetailerBusinessLink
from .inventory import CompanyProduct, RetailerInventory, InventoryTransaction, BusinessTransaction
from .transactions import Transaction, RetailerTransaction, CompanyPayment
from .dues import ConsumerDue, BusinessDue, RetailerDue, CompanyDue, DUE_MODELS
from .events import DueEvent

__all__ = [
    'User', 'Business', 'Retailer', 'Company', 'RetailerBusinessLink',
    'CompanyProduct', 'RetailerInventory', 'InventoryTransaction', 'BusinessTransaction',
    'Transaction', 'RetailerTransaction', 'CompanyPayment',
    'ConsumerDue', 'BusinessDue', 'RetailerDue', 'CompanyDue', 'DUE_MODELS',
    'DueEvent',
]
