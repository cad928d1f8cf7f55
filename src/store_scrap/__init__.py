"""Per-country new and updated game listings from the App Store and Google Play."""
