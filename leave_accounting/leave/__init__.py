"""Leave module: calendar, policy, ledger, validator and engine."""
