"""HTTP routers for the bypass approval API."""
