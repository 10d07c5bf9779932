"""Hardware and network adapters for the live session."""
