"""Core value types shared by metadata, validation and persistence."""
