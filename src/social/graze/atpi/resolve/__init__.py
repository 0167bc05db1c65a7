"""
AT-URL Resolution

This package turns an AT-URL into the JSON document it addresses.

Key Components:
- aturl.py: AT-URL parsing and identifier classification
- dns.py, wellknown.py, xrpc.py: Handle to DID strategies
- handle.py: Ordered strategy fallback with a result cache
- did.py: DID to service endpoint resolution
- record.py: Record, listing and repository description requests
- resolver.py: The façade combining the steps in local, remote or auto mode
- __main__.py: CLI interface for resolution

The resolution flow follows these steps:
1. Parse the URL and classify its identifier as a DID or a handle
2. For handles, try DNS, then well-known, then the directory, stopping at the first success
3. Resolve the DID to its personal data server
4. Fetch the addressed record from that server

Every network call carries its own timeout and failures fall through to the next fallback. Only the final,
fully exhausted failure is raised, as an ``AtpiError`` with a short human-readable reason.
"""
