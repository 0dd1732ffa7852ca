"""Strategies package initialization"""

# Import classes only when needed to avoid circular imports
# Use direct imports in your code: from strategies.listing_strategy import ListingStrategy

__all__ = [
    'BaseStrategy',
    'ListingStrategy',
    'OfferStrategy',
    'OfferCleanupStrategy',
]
