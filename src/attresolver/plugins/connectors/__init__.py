"""Built-in data connectors."""
