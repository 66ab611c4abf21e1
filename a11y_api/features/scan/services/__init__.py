"""
Scan Services

Organized by responsibility:

1. scan/ - API-side service: create, read, delete and render scans
   - scan.py: ScanService, enqueues a job for every new scan

2. queue/ - Job delivery bookkeeping
   - scan_queue.py: enqueue with a short delay, report ack/retry/fail
   - retry_policy.py: bounded attempts with exponential backoff
   - job_registry.py: Redis mirror of job states for status counts

3. processor/ - One delivery of one job
   - scan_processor.py: pending -> running -> completed | failed
   - results.py: ProcessResult / PersistenceSummary consumed by the worker

4. browser/ - Shared Selenium session per worker process
   - browser_manager.py: lazy launch or remote connect, isolated tab contexts

5. scanner/ - In-page rule engines (HTML_CodeSniffer, axe-core)
   - base.py: navigate, evaluate, filter, screenshot, normalize

6. rules/ - Help URLs per rule id for each engine

7. cleanup/ - Retention of scans, issues and orphaned screenshots
"""
