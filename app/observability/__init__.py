"""Correlated observability for request handling.

A per-request CorrelationContext carries the correlation id, the bound structlog
logger and the active span down the call chain; spans, log records and metric
samples of one request all share that id.
"""
