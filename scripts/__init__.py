"""
Utility Scripts.

This package contains operational and development scripts:

- normalize_submission.py: Run create or edit normalization on a JSON submission
- setup_supabase.py: Generate or verify the content table schema

Run scripts with: python -m scripts.<script_name>
"""
