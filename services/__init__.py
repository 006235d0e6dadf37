"""Service layer: hosted backend gateway, reconciliation, sentiment and analytics."""
