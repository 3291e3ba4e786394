"""
Ticketflow Kernel

Workflow definition and execution core for the service desk:
- Data-driven stage/transition/rule model
- Typed outcomes at the engine boundary
- Structured logging with request-scoped context
- SQLAlchemy-backed definition, approval and ticket stores
"""

__version__ = "0.1.0"
