from .tenancy import Store
from .auth import User, SessionToken
from .days import DayOperation, DayOperationEvent, CashMovement
from .sales import SaleTransaction, CreditTransaction, SupplierPayment
from .vat import VatConfiguration
from .promotions import Promotion

__all__ = [
    'Store',
    'User', 'SessionToken',
    'DayOperation', 'DayOperationEvent', 'CashMovement',
    'SaleTransaction', 'CreditTransaction', 'SupplierPayment',
    'VatConfiguration',
    'Promotion',
]
