"""Event bus for registry side effects."""
