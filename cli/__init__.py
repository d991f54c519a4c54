"""Terminal frontends for the conjoint pricing pipeline."""
