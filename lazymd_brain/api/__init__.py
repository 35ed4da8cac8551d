"""HTTP transport for the tool catalog."""
