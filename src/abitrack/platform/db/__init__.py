"""SQLite persistence for artifact stores."""
