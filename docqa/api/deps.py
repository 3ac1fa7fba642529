from fastapi import Request

from docqa.services.container import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
