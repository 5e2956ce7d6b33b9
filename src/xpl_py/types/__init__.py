"""Protocol enumerations."""
