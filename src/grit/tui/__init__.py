"""Terminal UI host."""
