"""
Equipment dependencies
======================

- matcher      Levenshtein similarity and equipment name matching
- graph        Upstream/downstream dependency chain (DFS, TTL-cached)
- suggestions  AI dependency suggestions: generation, review, approval
"""
