"""Nginx access log to Prometheus exporter."""
