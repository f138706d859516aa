"""Transactional service functions used by the HTTP routers and the AI pipelines."""
