"""
Asset documents
===============

- versions  Version labels, supersede links, version chains and archiving
"""
