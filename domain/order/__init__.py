"""Order aggregate: entity, status state machine and repository contract."""
