"""Pure scheduling, installment and state-machine rules (no I/O)."""
