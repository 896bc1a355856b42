"""Super-admin console."""
