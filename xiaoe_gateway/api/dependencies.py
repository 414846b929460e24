"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from xiaoe_gateway.domain.ports import PaymentProvider
from xiaoe_gateway.domain.templates import TemplateCommentWriter
from xiaoe_gateway.infrastructure.clients.llm import GenerationGateway


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_generation_gateway(request: Request) -> GenerationGateway:
    """Provide the application's vendor gateway"""
    return request.app.state.generation_gateway


def get_template_writer(request: Request) -> TemplateCommentWriter | None:
    """Template writer when the offline "template" model is enabled"""
    return request.app.state.template_writer


def get_payment_provider(request: Request) -> PaymentProvider:
    """Provide the configured payment provider (alipay or mock)"""
    return request.app.state.payment_provider
