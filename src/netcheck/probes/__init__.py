"""Protocol probes. Each returns a report and never raises on remote failures."""
