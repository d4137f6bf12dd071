"""Evolution Guard core runtime: component wiring, health, and HTTP surface."""
