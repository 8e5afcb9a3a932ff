"""
Core fix pipeline: loader, fix units, engine, reconciler and output sink.
"""
