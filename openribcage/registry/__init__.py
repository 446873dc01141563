"""Agent registry — live, queryable store of discovered agents."""
