"""knowgraph command-line interface."""
