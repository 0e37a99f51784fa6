"""Marketing campaign popups and their targeting rules."""
