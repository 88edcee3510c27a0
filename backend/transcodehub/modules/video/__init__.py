"""Upload and download handling."""
