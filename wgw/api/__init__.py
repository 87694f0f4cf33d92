"""HTTP surface for the capture client."""
