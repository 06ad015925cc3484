"""Middleware package for the application."""

from account_gate.middleware.request_id import RequestIDMiddleware

__all__ = ["RequestIDMiddleware"]
