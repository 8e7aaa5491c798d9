"""API routers, one per resource group."""

from . import auth, contact, products, users

routers = [auth.router, products.router, users.router, contact.router]

__all__ = ["routers"]
