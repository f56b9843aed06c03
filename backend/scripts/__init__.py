"""
Backend Scripts Module

Command-line utilities run from the backend directory.

Available scripts:
    - validate_workflow.py: Validate a workflow definition file or stored draft

Usage:
    python -m scripts.validate_workflow path/to/workflow.json
"""
