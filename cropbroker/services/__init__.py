"""Business logic, one module per area."""
