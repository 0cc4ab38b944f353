"""
Module: bot/scheduler/errors.py

Delivery failure types raised by transports.
"""

class DeliveryError(Exception):
    """
    A send failed. Raised (or any other exception) for failures worth retrying.
    """


class PermanentDeliveryError(DeliveryError):
    """
    A send can never succeed, e.g. the destination channel no longer exists.
    The timer is dropped immediately instead of retried.
    """
