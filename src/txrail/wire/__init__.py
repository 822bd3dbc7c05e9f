"""
Wire - the JSON-RPC side of txrail.

Provides the HTTP transport, the read/write provider router and the ABI
codec used to build call and deployment payloads.
"""
