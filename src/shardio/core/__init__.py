"""
Core read/write layer: codecs, enumeration, container files, naming and
sharded writing.
"""
