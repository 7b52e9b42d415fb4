"""Server connectors."""
