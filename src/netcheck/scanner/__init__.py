"""Check orchestration: the probe facade and the comprehensive runner."""
