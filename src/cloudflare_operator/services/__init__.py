"""Remote API clients."""
