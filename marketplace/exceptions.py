class MarketplaceError(Exception):
    """Base class for errors shown back to the user."""


class OrderError(MarketplaceError):
    pass


class CartError(MarketplaceError):
    pass


class GroupOrderError(MarketplaceError):
    pass


class RatingError(MarketplaceError):
    pass
