"""Core building blocks: settings levels, call records and context."""
