"""GitHub Projects (v2) GraphQL client and raw item model."""
