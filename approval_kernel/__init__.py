"""
Approval Kernel

Durable core of the purchase approval workflow engine:
- Typed, coded exceptions with an error-kind taxonomy
- Structured JSON logging with request-scoped context
- Pure domain types for workflow graphs and the purchase lifecycle
- ORM models for configs, purchase requests and the append-only workflow log
"""

__version__ = "0.1.0"
