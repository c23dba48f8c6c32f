"""Console entrypoint and composition root."""
