"""Point calculation for ranked entities."""
