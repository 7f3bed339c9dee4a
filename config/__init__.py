"""Configuration helpers for the production report portal."""

# This package collects runtime configuration that can be customised without
# touching the application logic.  ``settings`` resolves the process-wide
# settings once at startup and ``supabase_schema`` maps logical table and
# column identifiers onto the deployed Supabase schema.
