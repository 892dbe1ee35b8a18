"""Issue tracker and scorer integrations."""
