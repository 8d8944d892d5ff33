"""Backend access: tables, object storage and realtime events."""
