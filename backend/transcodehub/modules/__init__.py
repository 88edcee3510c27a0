"""Application modules.

- auth: Claims verification and access scope
- transcoding: Profile resolution and encoding
- catalog: Asset records, reconciliation and listings
- video: Upload and download endpoints
"""
