"""
Map data pipeline.

Turns a (bounds, zoom, filters) request into a typed MapDataResponse by calling
the hosted `get_map_data` procedure through a process-wide query cache.
"""
