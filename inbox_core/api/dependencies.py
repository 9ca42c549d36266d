"""
Request-scoped access to the services built at startup
"""
from fastapi import Request

from inbox_core.services import ConversationAssignmentService, StateSynchronizer


def get_assignment_service(request: Request) -> ConversationAssignmentService:
    return request.app.state.assignment_service


def get_state_synchronizer(request: Request) -> StateSynchronizer:
    return request.app.state.state_synchronizer
