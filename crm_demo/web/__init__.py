"""HTTP surface of the demo generator."""
