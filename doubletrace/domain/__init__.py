"""Pure domain types: call records, constraints, argument matching, ordering."""
