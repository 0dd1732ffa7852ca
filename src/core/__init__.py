"""Core package initialization"""

# Import classes only when needed to avoid circular imports
# Use direct imports in your code: from core.opensea_client import OpenSeaClient

__all__ = [
    'OpenSeaClient',
    'OrderManager',
    'ClientRegistry',
]
