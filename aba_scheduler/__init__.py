"""Session staffing engine: eligibility filter, greedy pass, swap optimizer and diagnostics."""
