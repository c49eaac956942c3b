"""Review import, queries and human actions."""
