"""Authentication: upstream OAuth and inbound API keys."""
