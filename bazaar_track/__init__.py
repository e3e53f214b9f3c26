"""
Bazaar track backend.

A FastAPI service for a local-market price tracker: vendors publish
products and advertisements, admins moderate them, and users keep watch
lists, leave reviews and pay for products.
"""
