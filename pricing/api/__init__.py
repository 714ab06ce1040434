"""
API module for the pricing service.

Provides REST endpoints for the storefront checkout.
"""
