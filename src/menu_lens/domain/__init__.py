"""Domain vocabulary and data records for menu processing."""
