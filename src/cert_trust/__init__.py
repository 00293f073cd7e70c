"""
cert_trust — X.509 certificate trust establishment.

Parses certificates, links them into chains by key identifier, keeps
CRLs cached and fresh, and asks an external verification engine (the
`openssl` command line tool) whether a certificate is trusted for a
purpose and has not been revoked.

Faults are exceptions in the domain; the orchestration pipeline turns
them into Railway-Oriented Programming Results.
"""

__version__ = "0.1.0"
