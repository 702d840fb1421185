
from .tenancy import Clinic
from .auth import User
from .clinical import Patient, Appointment, FollowUp
from .inventory import InventoryItem, InventoryTransaction
from .payments import Payment, ReceiptSequence
from .security import SecurityEvent

__all__ = [
    'Clinic',
    'User',
    'Patient', 'Appointment', 'FollowUp',
    'InventoryItem', 'InventoryTransaction',
    'Payment', 'ReceiptSequence',
    'SecurityEvent',
]
