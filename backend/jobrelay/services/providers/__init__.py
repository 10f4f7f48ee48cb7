"""Remote store clients, one per external provider.

Modules:
- base: shared httpx transport (auth headers, JSON, multipart, download, delete).
- documents: document runs (parse / edit / split / extract) and their status adapters.
- media: generation tasks (video / image) whose outputs are URLs.
- rerank: synchronous rerank endpoint used after fan-out.
"""
