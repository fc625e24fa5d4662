"""HTTP routers of the document gateway."""
