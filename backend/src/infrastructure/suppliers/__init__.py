"""Supplier service adapters."""

from .supplier_client import SupplierServiceClient

__all__ = ["SupplierServiceClient"]
