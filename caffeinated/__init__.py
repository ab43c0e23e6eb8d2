"""Stay Caffeinated: simulation core for the caffeine/health workday game."""
