"""Service orchestration layer: coordinates remote jobs end to end.

Modules:
- job_runner: submit -> poll -> terminal state driver and status adapters.
- lifecycle: scoped best-effort cleanup of remote artifacts.
- materializer: fetch job outputs and store them as durable links.
- fan_out: bounded-concurrency scrape and ordered merge.
- document_jobs, media_jobs, ocr_jobs, rerank_jobs: caller-facing operations.
"""
