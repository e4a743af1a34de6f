"""twocca -- a two-cent certificate authority.

Creates root and intermediate CAs, issues server, client and web-server
certificates, and maintains one CRL per authority in a flat directory
of PEM files.
"""

__version__ = "1.0.0"
