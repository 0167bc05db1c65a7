"""
ATPI - AT Protocol URL resolver

This package resolves AT-URLs (``at://<identifier>[/<collection>[/<record-key>]]``) to the JSON documents they
address without relying on a single central service. Handles are resolved to DIDs through DNS, the HTTPS well-known
endpoint or a directory host, DIDs are resolved to the personal data server that hosts the repository, and the
record is fetched from that server.

Key Components:
- resolve: The resolution engine and a command line interface for it
- app: Web service exposing resolution, the resolution mode preference and cache administration
- metrics: Metrics abstraction shared by the engine and the service
- model: In-process state owned by the service (health gauge, mode preference)

Architecture Overview:
1. Handle Resolution:
   - DNS TXT records via DNS-over-HTTPS providers, raced concurrently
   - HTTPS well-known endpoint on the handle's own host, redirects refused
   - com.atproto.identity.resolveHandle on the primary directory, then random regional hosts

2. DID Resolution:
   - did:plc through the PLC directory
   - did:web derived from the DID itself

3. Record Fetching:
   - getRecord, listRecords or describeRepo depending on the parts of the URL

Results of steps 1 and 2 are cached in memory for five minutes by default.
"""
