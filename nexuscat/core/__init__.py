"""Core configuration, caching, security and scheduling."""
