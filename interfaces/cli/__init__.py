"""Interactive terminal for the shop."""
