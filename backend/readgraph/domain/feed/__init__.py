"""Feed relevance: candidate retrieval, scoring and page assembly."""
