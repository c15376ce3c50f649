"""HTTP route modules for the Geyser API."""
