"""HTTP API for the training relay."""
