"""
dsm_cert_sync — keep a Synology DSM's TLS certificate in sync with local files.

Watches a PEM certificate/key pair on disk (typically renewed by an ACME
client) and pushes it to the DSM certificate store whenever its expiry
differs from the installed copy, on a timer and on file changes.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
