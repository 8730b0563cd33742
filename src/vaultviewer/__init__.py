"""
vaultviewer

Browse the resolved ACL of one or more Vault instances as a tree and ask
what a token can do at a given path, and why.
"""

__version__ = "0.1.0"
