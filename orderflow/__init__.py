"""
Orderflow - order and payment reconciliation service.
"""
