"""Access-control core for a multi-tenant identity provider."""
