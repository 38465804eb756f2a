"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .stripe_gateway import CheckoutSession, PaymentGateway, get_payment_gateway

__all__ = ['CheckoutSession', 'PaymentGateway', 'get_payment_gateway']
