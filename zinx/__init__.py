"""TCP server framework with message routing, worker pools, logging, timing wheels and an AOI grid."""

__version__ = "1.0.0"