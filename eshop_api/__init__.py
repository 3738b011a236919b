"""
eshop API: e-commerce REST backend for the eshop mobile and web clients
"""
__version__ = "1.0.0"
