"""
Models Package

This package contains all SQLAlchemy models for the application.
Importing them here registers them with the shared metadata.
"""

from .user import User, UserRole
from .asset import Asset, AssetType
from .investment import LIVE_STATUSES, Investment, InvestmentStatus
from .withdrawal import Withdrawal, WithdrawalStatus
from .transaction import Transaction, TransactionStatus, TransactionType
from .balance_entry import BalanceEntry, BalanceReason
from .notification import Notification, NotificationCategory
from .system_setting import SystemSetting

__all__ = [
    "User",
    "UserRole",
    "Asset",
    "AssetType",
    "LIVE_STATUSES",
    "Investment",
    "InvestmentStatus",
    "Withdrawal",
    "WithdrawalStatus",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "BalanceEntry",
    "BalanceReason",
    "Notification",
    "NotificationCategory",
    "SystemSetting",
]
