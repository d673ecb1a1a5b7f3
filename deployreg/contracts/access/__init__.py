"""Access-control helpers for packaged contracts."""
