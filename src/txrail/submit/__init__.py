"""
Submit - gas pricing, transaction dispatch and contract handles.

- gas:      congestion-aware gas price with a two-tier fallback
- events:   confirmation/error emitter and the one-shot completion guard
- dispatch: pre-signed and wallet-interactive submission
- contract: ABI + address + transport bound into deploy/use/send
"""
