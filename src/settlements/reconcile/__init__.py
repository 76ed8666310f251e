"""
Settlement Reconstruction Package
"""

from .reconstructor import order_facts, reconstruct

__all__ = ["order_facts", "reconstruct"]
