"""Built-in attribute definitions."""
