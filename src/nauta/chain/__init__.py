"""
Chain - On-chain access layer for nauta.

JSON-RPC client and ERC-20 metadata reader. Uses httpx + eth-abi
instead of the heavyweight web3.py.
"""
