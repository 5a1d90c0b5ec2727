"""Pure domain layer: value objects, role table, state machine. Zero I/O."""
