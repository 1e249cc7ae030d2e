"""Domain models and record accessors, free of any analysis logic."""
