"""Field catalog, schema assembly and setup configuration."""
