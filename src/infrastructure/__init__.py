"""Infrastructure Layer.

I/O adapters implementing domain ports, plus runtime settings.
"""
