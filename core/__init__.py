"""
Core translation orchestration: jobs, files, QA, correction memory.
"""
