"""Job run bookkeeping."""
