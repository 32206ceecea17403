"""readgraph: follow graph, feed relevance and notification backend."""
