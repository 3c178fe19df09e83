"""Workflow execution engine package.

Subpackages:
- engine: Document model, validation, expression resolution, graph walker, reporting
- nodes: Node type registry and executor implementations (start, condition, MongoDB)
- store: Document store capability (MongoDB and in-memory backends)
"""
