"""HTTP routes of the map directory."""
