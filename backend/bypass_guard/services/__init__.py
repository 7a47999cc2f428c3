"""Domain services for the bypass approval workflow."""
