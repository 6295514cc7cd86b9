"""Cookie preference service HTTP API."""
