"""Pipeline packages."""
