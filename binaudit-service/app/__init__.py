"""Binary Audit HTTP service."""
