"""Request use cases: submit a request against a process template."""

from procflow.application.use_cases.requests.submit_request import SubmitRequestUseCase

__all__ = ["SubmitRequestUseCase"]
