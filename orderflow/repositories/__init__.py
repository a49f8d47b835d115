"""
Repository package for data access layer.
"""
from orderflow.repositories.base import BaseRepository
from orderflow.repositories.customer import CustomerRepository
from orderflow.repositories.order import OrderRepository
from orderflow.repositories.payment import PaymentRepository
from orderflow.repositories.promo import PromoRepository

__all__ = [
    "BaseRepository",
    "CustomerRepository",
    "OrderRepository",
    "PaymentRepository",
    "PromoRepository",
]
