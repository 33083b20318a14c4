"""
Server services: registry reconciliation, live connections, orchestration
"""
