"""PRFlow — purchase request approval service."""
