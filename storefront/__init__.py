"""Cart and session state for the pastry storefront."""
